from unittest.mock import MagicMock, patch

import httpx
import pytest

from estates import email_service
from estates.email_templates import payout_sent_template, sync_failure_alert_template
from estates.utils.media_storage import photo_object_key, rehost_photo


class TestTemplates:
    def test_payout_sent(self):
        mjml = payout_sent_template("Layla", 1250.5, 3, "PayPal account")
        assert "<mjml>" in mjml
        assert "$1,250.50" in mjml
        assert "3 approved commissions" in mjml
        assert "PayPal account" in mjml

    def test_single_commission_is_singular(self):
        assert "1 approved commission." in payout_sent_template("Layla", 60, 1, "connected Stripe account")

    def test_sync_alert_lists_first_ten_errors(self):
        errors = [f"Chunk {i}: timeout" for i in range(15)]
        mjml = sync_failure_alert_template("bayut_daily_sync", "failed", 0, 3, errors)
        assert "Chunk 9: timeout" in mjml
        assert "Chunk 10: timeout" not in mjml

    def test_sync_alert_without_errors(self):
        assert "No error details recorded" in sync_failure_alert_template("bayut_daily_sync", "failed", 0, 0, [])


class TestSendEmail:
    @pytest.mark.asyncio
    async def test_not_configured(self):
        with patch.object(email_service, "RESEND_API_KEY", None):
            with pytest.raises(Exception, match="Email service not configured"):
                await email_service.send_email("ops@example.com", "Subject", "<mjml></mjml>")

    @pytest.mark.asyncio
    async def test_sends_compiled_html(self):
        with patch.object(email_service, "RESEND_API_KEY", "re_test"), patch.object(
            email_service, "compile_mjml_to_html", return_value="<html>ok</html>"
        ), patch.object(email_service.resend.Emails, "send", return_value={"id": "email_1"}) as send:
            response = await email_service.send_payout_sent_email("aff@example.com", "Layla", 75, 2)

        assert response == {"id": "email_1"}
        params = send.call_args.args[0]
        assert params["to"] == ["aff@example.com"]
        assert params["subject"] == "Payout Sent: $75.00"
        assert params["html"] == "<html>ok</html>"

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self):
        with patch.object(email_service, "RESEND_API_KEY", "re_test"), patch.object(
            email_service, "compile_mjml_to_html", return_value="<html></html>"
        ), patch.object(email_service.resend.Emails, "send", side_effect=RuntimeError("422 invalid from")):
            with pytest.raises(Exception, match="Failed to send email"):
                await email_service.send_email("ops@example.com", "Subject", "<mjml></mjml>")


class TestPhotoRehosting:
    def test_object_key(self):
        assert photo_object_key("https://images.bayut.com/thumbnails/123-800x600.jpeg?v=2", "77") == "bayut/77/123-800x600.jpg"
        assert photo_object_key("https://images.bayut.com/a/cover.png", "77") == "bayut/77/cover.png"

    @pytest.mark.asyncio
    async def test_uploads_to_bucket(self):
        r2 = MagicMock()
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, content=b"jpeg-bytes", headers={"content-type": "image/jpeg"})
        )
        async with httpx.AsyncClient(transport=transport) as http_client:
            url = await rehost_photo(http_client, "https://images.bayut.com/1/cover.jpg", "1", r2_client=r2)

        assert url.endswith("/bayut/1/cover.jpg")
        kwargs = r2.put_object.call_args.kwargs
        assert kwargs["Key"] == "bayut/1/cover.jpg"
        assert kwargs["Body"] == b"jpeg-bytes"

    @pytest.mark.asyncio
    async def test_download_failure_returns_none(self):
        r2 = MagicMock()
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        async with httpx.AsyncClient(transport=transport) as http_client:
            assert await rehost_photo(http_client, "https://images.bayut.com/1/gone.jpg", "1", r2_client=r2) is None
        r2.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_upload_failure_returns_none(self):
        r2 = MagicMock()
        r2.put_object.side_effect = RuntimeError("AccessDenied")
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"x"))
        async with httpx.AsyncClient(transport=transport) as http_client:
            assert await rehost_photo(http_client, "https://images.bayut.com/1/cover.jpg", "1", r2_client=r2) is None
