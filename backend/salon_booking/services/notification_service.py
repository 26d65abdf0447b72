"""
Outbound invite notifications.

Invites are delivered by POSTing a small JSON payload to the messaging
webhook configured in PROPOSED_MEETING_WEBHOOK_URL.
"""

import logging
from typing import Optional

import requests

from salon_booking.core import config
from salon_booking.core.exceptions import DeliveryError
from salon_booking.domain.entities import Customer, ProposedMeeting
from salon_booking.domain.interfaces import DeliveryReceipt, INotificationDispatcher
from salon_booking.services.calendar_window import business_now

logger = logging.getLogger(__name__)


class WebhookNotificationDispatcher(INotificationDispatcher):
    """Deliver invites through the configured HTTP webhook."""

    def __init__(self, url: Optional[str] = None, timeout: Optional[int] = None):
        self.url = url if url is not None else config.PROPOSED_MEETING_WEBHOOK_URL
        self.timeout = timeout or config.NOTIFICATION_TIMEOUT_SECONDS

    def send_invite(self, customer: Customer, meeting: ProposedMeeting) -> DeliveryReceipt:
        if not self.url:
            raise DeliveryError("Webhook URL not configured")

        payload = {"clientId": customer.id, "proposedMeetingId": meeting.id}
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            body = e.response.text if e.response is not None else ""
            logger.warning(
                "Invite webhook rejected",
                extra={
                    "context": {
                        "meeting_id": meeting.id,
                        "customer_id": customer.id,
                        "status_code": status,
                    }
                },
            )
            raise DeliveryError(
                f"{status} {body}".strip(),
                details={"status_code": status},
            )
        except requests.RequestException as e:
            logger.error(
                "Invite webhook unreachable",
                extra={
                    "context": {
                        "meeting_id": meeting.id,
                        "customer_id": customer.id,
                        "error": str(e),
                    }
                },
                exc_info=True,
            )
            raise DeliveryError(str(e))

        return DeliveryReceipt(status_code=response.status_code, sent_at=business_now())
