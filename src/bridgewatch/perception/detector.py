"""
Vehicle Detector Client
=======================

HTTP client for the external deterministic vehicle-counting service.

Request:
    POST <url>  {"image": "<base64>", "camera_view": "bridge"}

Response:
    See bridgewatch.models.detection for the expected body.

Design Rules:
    - Never raises; transport errors, non-2xx and malformed bodies
      all become None so callers fall back to qualitative assessment
    - A direction-uncertain result is returned (and logged) as-is;
      traffic levels are withheld downstream via traffic_levels()
"""

import logging
from typing import Optional

import httpx

from bridgewatch.frames.frame import Frame
from bridgewatch.models.detection import DetectorResult


logger = logging.getLogger(__name__)


class VehicleDetectorClient:
    """
    Async client for the vehicle counting service.

    Attributes:
        url: Service endpoint, or None when no detector is deployed
        camera_view: View tag sent with every request
        call_count / error_count / uncertain_count: Counters
    """

    def __init__(
        self,
        url: Optional[str],
        timeout: float = 30.0,
        camera_view: str = "bridge",
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize detector client.

        Args:
            url: Detection endpoint. None disables detection.
            timeout: Request timeout in seconds
            camera_view: Camera view tag sent to the service
            http_client: Pre-built client (tests inject a mock transport)
        """
        self.url = url
        self.camera_view = camera_view
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

        self.call_count: int = 0
        self.error_count: int = 0
        self.uncertain_count: int = 0

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def detect(self, frame: Optional[Frame]) -> Optional[DetectorResult]:
        """
        Count vehicles in a bridge frame.

        Args:
            frame: The selected BRIDGE frame, or None

        Returns:
            DetectorResult, or None if unavailable for any reason
        """
        if frame is None or not self.url:
            return None

        self.call_count += 1
        try:
            response = await self._client.post(
                self.url,
                json={"image": frame.to_base64(), "camera_view": self.camera_view},
            )
            response.raise_for_status()
            result = DetectorResult.from_payload(response.json())
        except httpx.HTTPError as e:
            self.error_count += 1
            logger.warning(f"Vehicle detector request failed: {e!r}")
            return None
        except ValueError as e:
            self.error_count += 1
            logger.warning(f"Vehicle detector returned malformed body: {e}")
            return None
        except Exception as e:
            self.error_count += 1
            logger.exception(f"Vehicle detector call failed unexpectedly: {e!r}")
            return None

        if result.direction_uncertain:
            self.uncertain_count += 1
            logger.info(
                f"Vehicle detector direction uncertain: "
                f"LS_to_SA={result.ls_to_sa}, SA_to_LS={result.sa_to_ls}, total={result.total}"
            )
        else:
            logger.info(
                f"Vehicle detector: LS_to_SA={result.ls_to_sa}, "
                f"SA_to_LS={result.sa_to_ls}, total={result.total}"
            )
        return result

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def get_metrics(self) -> dict:
        return {
            "configured": self.configured,
            "call_count": self.call_count,
            "error_count": self.error_count,
            "uncertain_count": self.uncertain_count,
        }
