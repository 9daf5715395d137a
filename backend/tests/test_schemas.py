"""
Tests for Pydantic schemas validation.
"""
import pytest
from datetime import datetime
from pydantic import ValidationError

from cardforge.models import CreditTransaction, Order, OrderStatus, PrintOptions, PrintSize
from cardforge.schemas.images import GenerateImageRequest, GenerateImageResponse
from cardforge.schemas.me import TransactionResponse
from cardforge.schemas.orders import CheckoutRequest, OrderResponse, UpdateStatusRequest


class TestImageSchemas:
    """Tests for image generation schemas."""

    def test_generate_request_camel_case(self):
        schema = GenerateImageRequest.model_validate({"prompt": "a turtle", "imageSize": "1024x576"})
        assert schema.image_size == "1024x576"

    def test_generate_request_field_name(self):
        schema = GenerateImageRequest(prompt="a turtle", image_size="square_hd")
        assert schema.image_size == "square_hd"

    def test_generate_request_default_size(self):
        schema = GenerateImageRequest(prompt="a turtle")
        assert schema.image_size == "landscape_4_3"

    def test_generate_request_missing_prompt(self):
        with pytest.raises(ValidationError):
            GenerateImageRequest()

    def test_generate_response_serializes_camel_case(self):
        schema = GenerateImageResponse(
            image_url="https://fal.media/x.jpg",
            storage_url="https://cdn.cardforge.test/generated/x.jpg",
            credits_used=6,
            remaining_credits=4,
            image_id="image-uuid",
        )
        data = schema.model_dump(by_alias=True)
        assert data["creditsUsed"] == 6
        assert data["remainingCredits"] == 4
        assert data["seed"] is None


class TestOrderSchemas:
    """Tests for checkout and order schemas."""

    def test_checkout_request_nested(self):
        schema = CheckoutRequest.model_validate({
            "orderItems": [{
                "printOptions": {"size": "large", "quantity": 3},
                "uploadedImage": {"name": "Turtle", "src": "https://cdn.cardforge.test/t.png"},
                "imageId": "image-uuid",
            }],
            "totalAmount": 600,
        })
        [item] = schema.order_items
        assert item.print_options.size == PrintSize.LARGE
        assert item.print_options.quantity == 3
        assert item.uploaded_image.name == "Turtle"
        assert item.image_id == "image-uuid"
        assert schema.success_url is None

    def test_print_size_defaults_to_standard(self):
        schema = CheckoutRequest.model_validate({
            "orderItems": [{
                "printOptions": {"quantity": 1},
                "uploadedImage": {"name": "Turtle", "src": "https://cdn.cardforge.test/t.png"},
            }],
            "totalAmount": 200,
        })
        assert schema.order_items[0].print_options.size == PrintSize.STANDARD

    def test_checkout_request_unknown_size(self):
        with pytest.raises(ValidationError):
            CheckoutRequest.model_validate({
                "orderItems": [{
                    "printOptions": {"size": "poster", "quantity": 1},
                    "uploadedImage": {"name": "Turtle", "src": "https://cdn.cardforge.test/t.png"},
                }],
                "totalAmount": 200,
            })

    def test_checkout_request_missing_total(self):
        with pytest.raises(ValidationError):
            CheckoutRequest.model_validate({"orderItems": []})

    def test_update_status_valid(self):
        schema = UpdateStatusRequest.model_validate({"newStatus": "shipped"})
        assert schema.new_status == OrderStatus.SHIPPED

    def test_update_status_invalid(self):
        with pytest.raises(ValidationError):
            UpdateStatusRequest.model_validate({"newStatus": "lost"})

    def test_order_response_from_model(self):
        now = datetime.utcnow()
        order = Order(
            id="order-uuid",
            user_id="user-uuid",
            image_name="Turtle",
            image_url="https://cdn.cardforge.test/t.png",
            status=OrderStatus.PAID,
            payment_session_id="cs_test_123",
            unit_price_cents=150,
            total_cents=1500,
            created_at=now,
            updated_at=now,
        )
        order.print_options = PrintOptions(size=PrintSize.STANDARD, quantity=10)

        schema = OrderResponse.model_validate(order)
        assert schema.status == OrderStatus.PAID
        assert schema.print_options.quantity == 10

        data = schema.model_dump(by_alias=True, mode="json")
        assert data["paymentSessionId"] == "cs_test_123"
        assert data["printOptions"] == {"size": "standard", "quantity": 10}
        assert data["imageMetadataId"] is None


class TestLedgerSchemas:
    """Tests for credit ledger schemas."""

    def test_transaction_response_from_model(self):
        transaction = CreditTransaction(
            id="tx-uuid",
            user_id="user-uuid",
            delta=-6,
            balance_after=4,
            reason="image_generation",
            created_at=datetime.utcnow(),
        )
        data = TransactionResponse.model_validate(transaction).model_dump(by_alias=True)
        assert data["delta"] == -6
        assert data["balanceAfter"] == 4
        assert data["reason"] == "image_generation"
