import pytest

from core.errors import ProviderError
from models.enums import PaymentStatus
from models.mpesa_payment import MpesaPayment
from models.payment_request import PaymentRequest
from schemas.mpesa import StkPushRequest
from services.payments import PaymentInitiator


VALID_BODY = {"amount": 200, "phoneNumber": "254712345678", "paymentRequestId": "pr_abc123def456"}
SUCCESS_CALLBACK = {
    "Body": {
        "stkCallback": {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": "ws_CO_191220191020363925",
            "ResultCode": 0,
            "ResultDesc": "The service request is processed successfully.",
            "CallbackMetadata": {
                "Item": [
                    {"Name": "Amount", "Value": 200},
                    {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
                    {"Name": "PhoneNumber", "Value": 254712345678},
                ]
            },
        }
    }
}


def _reload(db, payment_request_id="pr_abc123def456"):
    db.expire_all()
    return db.get(PaymentRequest, payment_request_id)


class TestStkPushAccepted:
    def test_push_is_sent_and_request_updated(self, client, db_session_override, mpesa_config, payment_request, fake_mpesa):
        resp = client.post("/mpesa/stk-push", json=VALID_BODY)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["message"] == "Success. Request accepted for processing"
        assert data["checkoutRequestId"] == "ws_CO_191220191020363925"

        assert len(fake_mpesa.instances) == 1
        client_used = fake_mpesa.instances[0]
        assert client_used.config.id == mpesa_config.id
        assert client_used.pushes == [
            {"amount": 200, "phone_number": "254712345678", "reference": "KIC-pr_abc12"}
        ]

        stored = _reload(db_session_override)
        assert stored.checkout_request_id == "ws_CO_191220191020363925"
        assert stored.merchant_request_id == "29115-34620561-1"
        assert stored.status == PaymentStatus.PENDING

    def test_never_creates_payment_record(self, client, db_session_override, mpesa_config, payment_request, fake_mpesa):
        client.post("/mpesa/stk-push", json=VALID_BODY)
        assert db_session_override.query(MpesaPayment).count() == 0

    def test_rejected_push_marks_request_failed(self, client, db_session_override, mpesa_config, payment_request, fake_mpesa):
        fake_mpesa.reply = dict(
            fake_mpesa.reply, ResponseCode="1", CustomerMessage="Unable to lock subscriber, a transaction is already in process"
        )

        resp = client.post("/mpesa/stk-push", json=VALID_BODY)

        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert "already in process" in resp.json()["message"]
        assert _reload(db_session_override).status == PaymentStatus.FAILED

    def test_unknown_payment_request_still_reports_provider_answer(self, client, mpesa_config, fake_mpesa):
        body = dict(VALID_BODY, paymentRequestId="pr_doesnotexist")
        resp = client.post("/mpesa/stk-push", json=body)
        assert resp.status_code == 200
        assert resp.json()["success"] is True


class TestStkPushValidation:
    @pytest.mark.parametrize("amount", [0, -50, "200", True, None])
    def test_bad_amount_rejected_without_side_effects(self, client, db_session_override, mpesa_config, payment_request, fake_mpesa, amount):
        resp = client.post("/mpesa/stk-push", json=dict(VALID_BODY, amount=amount))

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert fake_mpesa.instances == []
        stored = _reload(db_session_override)
        assert stored.checkout_request_id is None
        assert stored.status == PaymentStatus.PENDING

    @pytest.mark.parametrize("phone", ["0712345678", "+254712345678", "25471234567", "2547123456789", "254-712345678", ""])
    def test_bad_phone_rejected(self, client, mpesa_config, payment_request, fake_mpesa, phone):
        resp = client.post("/mpesa/stk-push", json=dict(VALID_BODY, phoneNumber=phone))
        assert resp.status_code == 400
        assert any("phoneNumber" in detail for detail in resp.json()["details"])
        assert fake_mpesa.instances == []

    def test_short_payment_request_id_rejected(self, client, mpesa_config, fake_mpesa):
        resp = client.post("/mpesa/stk-push", json=dict(VALID_BODY, paymentRequestId="pr_1"))
        assert resp.status_code == 400
        assert fake_mpesa.instances == []

    def test_missing_fields_rejected(self, client, mpesa_config, fake_mpesa):
        resp = client.post("/mpesa/stk-push", json={"amount": 200})
        assert resp.status_code == 400
        assert fake_mpesa.instances == []

    def test_invalid_json_rejected(self, client, mpesa_config, fake_mpesa):
        resp = client.post("/mpesa/stk-push", content=b"{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert fake_mpesa.instances == []


class TestStkPushFailures:
    def test_missing_config_is_404(self, client, payment_request, fake_mpesa):
        resp = client.post("/mpesa/stk-push", json=VALID_BODY)

        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "MPESA configuration not found"}
        assert fake_mpesa.instances == []

    def test_inactive_config_is_not_used(self, client, db_session_override, mpesa_config, payment_request, fake_mpesa):
        mpesa_config.is_active = False
        db_session_override.commit()

        resp = client.post("/mpesa/stk-push", json=VALID_BODY)
        assert resp.status_code == 404

    def test_provider_error_is_500_with_details(self, client, db_session_override, mpesa_config, payment_request, fake_mpesa):
        fake_mpesa.error = ProviderError("STK Push request failed", status=400, response_text='{"errorCode": "400.002.02"}')

        resp = client.post("/mpesa/stk-push", json=VALID_BODY)

        assert resp.status_code == 500
        data = resp.json()
        assert data["success"] is False
        assert data["message"] == "Payment processing failed"
        assert "400.002.02" in data["details"]
        stored = _reload(db_session_override)
        assert stored.checkout_request_id is None
        assert stored.status == PaymentStatus.PENDING

    def test_unexpected_error_is_500(self, client, mpesa_config, payment_request, fake_mpesa):
        fake_mpesa.error = RuntimeError("connection reset")

        resp = client.post("/mpesa/stk-push", json=VALID_BODY)

        assert resp.status_code == 500
        assert resp.json()["details"] == "connection reset"


class TestStkPushHeaders:
    def test_preflight(self, client):
        resp = client.options("/mpesa/stk-push")

        assert resp.status_code == 204
        assert resp.headers["Access-Control-Allow-Origin"] == "https://kic.example.com"
        assert "content-type" in resp.headers["Access-Control-Allow-Headers"]

    def test_security_headers_on_every_response(self, client, mpesa_config, payment_request, fake_mpesa):
        for body in (VALID_BODY, dict(VALID_BODY, amount=-1)):
            resp = client.post("/mpesa/stk-push", json=body)
            assert resp.headers["X-Content-Type-Options"] == "nosniff"
            assert resp.headers["X-Frame-Options"] == "DENY"
            assert "max-age" in resp.headers["Strict-Transport-Security"]
            assert "Content-Security-Policy" in resp.headers
            assert "X-XSS-Protection" in resp.headers
            assert resp.headers["Access-Control-Allow-Origin"] == "https://kic.example.com"


class TestStkPushSettledRequests:
    def test_completed_request_is_not_pushed_again(self, client, db_session_override, mpesa_config, pushed_request, fake_mpesa):
        pushed_request.status = PaymentStatus.COMPLETED
        db_session_override.commit()

        resp = client.post("/mpesa/stk-push", json=VALID_BODY)

        assert resp.status_code == 409
        assert resp.json() == {"success": False, "message": "Payment request already completed"}
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert fake_mpesa.instances == []
        stored = _reload(db_session_override)
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.checkout_request_id == "ws_CO_191220191020363925"

    def test_paid_request_cannot_be_settled_twice(self, client, db_session_override, mpesa_config, payment_request, fake_mpesa):
        assert client.post("/mpesa/stk-push", json=VALID_BODY).status_code == 200
        assert client.post("/mpesa/callback", json=SUCCESS_CALLBACK).text == "OK"

        fake_mpesa.reply = dict(fake_mpesa.reply, CheckoutRequestID="ws_CO_second_attempt")
        resp = client.post("/mpesa/stk-push", json=VALID_BODY)

        assert resp.status_code == 409
        assert len(fake_mpesa.instances) == 1
        assert _reload(db_session_override).status == PaymentStatus.COMPLETED
        assert db_session_override.query(MpesaPayment).count() == 1

    def test_failed_request_can_be_retried(self, client, db_session_override, mpesa_config, pushed_request, fake_mpesa):
        pushed_request.status = PaymentStatus.FAILED
        db_session_override.commit()
        fake_mpesa.reply = dict(fake_mpesa.reply, CheckoutRequestID="ws_CO_retry")

        resp = client.post("/mpesa/stk-push", json=VALID_BODY)

        assert resp.status_code == 200
        assert resp.json()["checkoutRequestId"] == "ws_CO_retry"
        stored = _reload(db_session_override)
        assert stored.status == PaymentStatus.PENDING
        assert stored.checkout_request_id == "ws_CO_retry"

    def test_completion_during_push_is_not_reopened(self, db_session_override, mpesa_config, pushed_request):
        db = db_session_override

        class CompletingClient:
            # The callback for the first push lands while the second push is in flight
            def __init__(self, config):
                self.config = config

            def stk_push(self, amount, phone_number, reference):
                db.query(PaymentRequest).filter(PaymentRequest.id == pushed_request.id).update(
                    {PaymentRequest.status: PaymentStatus.COMPLETED}, synchronize_session=False
                )
                db.commit()
                return {
                    "MerchantRequestID": "29115-34620561-2",
                    "CheckoutRequestID": "ws_CO_raced",
                    "ResponseCode": "0",
                    "CustomerMessage": "Success. Request accepted for processing",
                }

        data = StkPushRequest.model_validate(VALID_BODY)
        result = PaymentInitiator(db, CompletingClient).initiate(data)

        assert result.success is True
        assert result.checkoutRequestId == "ws_CO_raced"
        stored = _reload(db)
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.checkout_request_id == "ws_CO_191220191020363925"
