import logging
import traceback

import requests

from . import config

logger = logging.getLogger(__name__)


class Service:
    @staticmethod
    def sms_payload(msisdn: str, message: str) -> dict:
        return {
            "SenderId": config.SENDER_ID,
            "ApiKey": config.API_KEY,
            "ClientId": config.CLIENT_ID,
            "MessageParameters": [
                {
                    "Number": msisdn,
                    "Text": message
                }
            ]
        }

    @staticmethod
    def send_message(msisdn: str, message: str):
        """
        Deliver a loan notification through the SMS gateway.

        Runs after the USSD reply has been sent, so failures are logged and
        returned as {"error": ...}, never raised.
        """
        if not config.SMS_URL:
            return {"error": "SMS gateway not configured"}

        headers = {
            'accesskey': config.ACCESS_KEY,
            'Content-Type': 'application/json'
        }
        try:
            response = requests.post(
                url=config.SMS_URL,
                json=Service.sms_payload(msisdn, message),
                headers=headers,
                timeout=config.SMS_TIMEOUT_SECONDS
            )
        except requests.RequestException as e:
            logger.error(f"SMS delivery failed - MSISDN: [{msisdn}], Error: [{str(e)}]\n"
                         f"Stack Trace:\n{traceback.format_exc()}")
            return {"error": str(e)}

        if response.status_code != 200:
            logger.error(f"SMS gateway rejected message - MSISDN: [{msisdn}], Status: [{response.status_code}], "
                         f"Body: [{response.text}]")
            return {"error": response.text}

        logger.info(f"SMS sent - MSISDN: [{msisdn}]")
        return response.json()
