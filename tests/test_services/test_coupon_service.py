"""
CouponService业务逻辑测试
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from sqlalchemy.exc import IntegrityError

from storefront.api.exceptions import (
    BusinessException,
    CouponAlreadyExistsError,
    CouponNotFoundError,
    CouponRedemptionConflict,
    CouponRejectedError,
)
from storefront.services.coupon_service import CouponService
from storefront.repositories.coupon_repository import CouponRepository
from storefront.models.cart import CartItem
from storefront.models.coupon import (
    CouponAccepted,
    CouponCreate,
    CouponRejectionReason,
    CouponUpdate,
    DiscountType,
)
from storefront.models.database.coupon_db import CouponDB, CouponRedemptionDB


@pytest.mark.asyncio
class TestCouponService:
    """CouponService业务逻辑测试类"""

    @pytest.fixture
    def mock_coupon_repo(self):
        """模拟CouponRepository，模型转换使用真实实现"""
        repo = AsyncMock(spec=CouponRepository)
        converter = CouponRepository(None)
        repo.to_model.side_effect = converter.to_model
        repo.to_redemption_model.side_effect = converter.to_redemption_model
        repo.get_redemption_by_order.return_value = None
        return repo

    @pytest.fixture
    def mock_cache(self):
        """模拟缓存"""
        cache = AsyncMock()
        cache.get = AsyncMock(return_value=None)
        cache.set = AsyncMock(return_value=True)
        cache.delete = AsyncMock(return_value=True)
        cache.delete_pattern = AsyncMock(return_value=0)
        return cache

    @pytest.fixture
    def coupon_service(self, mock_coupon_repo, mock_cache):
        """创建CouponService实例"""
        service = CouponService(mock_coupon_repo)
        service.cache = mock_cache
        return service

    @pytest.fixture
    def sample_coupon_db(self):
        """示例CouponDB对象：SAVE20，满100减20%，最多50"""
        now = datetime.now(timezone.utc)
        return CouponDB(
            code="SAVE20",
            description="20% off orders over $100",
            discount_type="percentage",
            value=Decimal("20.00"),
            min_purchase=Decimal("100.00"),
            max_discount=Decimal("50.00"),
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=30),
            usage_limit=100,
            used_count=10,
            is_active=True
        )

    @pytest.fixture
    def sample_redemption_db(self):
        return CouponRedemptionDB(
            redemption_id="r-001",
            coupon_code="SAVE20",
            order_id="order-001",
            user_id="user-001",
            subtotal=Decimal("150.00"),
            discount_amount=Decimal("30.00"),
            redeemed_at=datetime.now(timezone.utc)
        )

    @pytest.fixture
    def coupon_create(self):
        now = datetime.now(timezone.utc)
        return CouponCreate(
            code="spring15",
            description="15% off",
            discount_type=DiscountType.PERCENTAGE,
            value=Decimal("15"),
            valid_from=now,
            valid_until=now + timedelta(days=7)
        )

    async def test_get_coupon_by_code_cache_hit(self, coupon_service, mock_cache, mock_coupon_repo, sample_coupon_db):
        """测试从缓存获取优惠券详情"""
        cached = CouponRepository(None).to_model(sample_coupon_db).model_dump(mode="json")
        mock_cache.get.return_value = cached

        result = await coupon_service.get_coupon_by_code("save20")

        assert result is not None
        assert result.code == "SAVE20"
        assert result.max_discount == Decimal("50")
        mock_cache.get.assert_called_once_with("coupon:code:SAVE20")
        mock_coupon_repo.get_by_code.assert_not_called()

    async def test_get_coupon_by_code_cache_miss(self, coupon_service, mock_cache, mock_coupon_repo, sample_coupon_db):
        """测试缓存未命中时从数据库读取并写入缓存"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db

        result = await coupon_service.get_coupon_by_code("SAVE20")

        assert result.code == "SAVE20"
        assert result.discount_type == DiscountType.PERCENTAGE
        mock_coupon_repo.get_by_code.assert_called_once_with("SAVE20")
        mock_cache.set.assert_called_once_with(
            "coupon:code:SAVE20", result.model_dump(mode="json"), ttl=1800
        )

    async def test_get_coupon_or_404(self, coupon_service, mock_coupon_repo):
        """测试优惠券不存在"""
        mock_coupon_repo.get_by_code.return_value = None

        with pytest.raises(CouponNotFoundError) as exc_info:
            await coupon_service.get_coupon_or_404("missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.details == {"coupon_code": "MISSING"}

    async def test_create_coupon(self, coupon_service, mock_coupon_repo, mock_cache, coupon_create, sample_coupon_db):
        """测试创建优惠券，代码统一大写"""
        mock_coupon_repo.get_by_code.return_value = None
        sample_coupon_db.code = "SPRING15"
        mock_coupon_repo.create.return_value = sample_coupon_db

        result = await coupon_service.create_coupon(coupon_create)

        assert result.code == "SPRING15"
        data = mock_coupon_repo.create.call_args.args[0]
        assert data["code"] == "SPRING15"
        assert data["discount_type"] == "percentage"
        assert "created_at" not in data
        mock_cache.delete.assert_called_once_with("coupon:code:SPRING15")

    async def test_create_duplicate_coupon(self, coupon_service, mock_coupon_repo, coupon_create, sample_coupon_db):
        """测试重复创建优惠券"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db

        with pytest.raises(CouponAlreadyExistsError):
            await coupon_service.create_coupon(coupon_create)

        mock_coupon_repo.create.assert_not_called()

    async def test_create_coupon_with_invalid_percentage(self, coupon_service, mock_coupon_repo, coupon_create):
        """测试百分比超过100的优惠券被拒绝"""
        coupon_create.value = Decimal("150")

        with pytest.raises(BusinessException) as exc_info:
            await coupon_service.create_coupon(coupon_create)

        assert exc_info.value.code == "invalid_coupon"
        assert exc_info.value.status_code == 422
        mock_coupon_repo.create.assert_not_called()

    async def test_update_coupon(self, coupon_service, mock_coupon_repo, mock_cache, sample_coupon_db):
        """测试只更新请求中的字段"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db
        mock_coupon_repo.update.return_value = sample_coupon_db

        await coupon_service.update_coupon("save20", CouponUpdate(min_purchase=Decimal("50")))

        mock_coupon_repo.update.assert_called_once_with("save20", {"min_purchase": Decimal("50")})
        mock_cache.delete.assert_called_once_with("coupon:code:SAVE20")

    async def test_update_coupon_with_invalid_period(self, coupon_service, mock_coupon_repo, sample_coupon_db):
        """测试结束时间早于开始时间"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db
        update = CouponUpdate(valid_until=sample_coupon_db.valid_from - timedelta(days=1))

        with pytest.raises(BusinessException):
            await coupon_service.update_coupon("SAVE20", update)

        mock_coupon_repo.update.assert_not_called()

    async def test_deactivate_missing_coupon(self, coupon_service, mock_coupon_repo):
        mock_coupon_repo.deactivate.return_value = False

        with pytest.raises(CouponNotFoundError):
            await coupon_service.deactivate_coupon("NOPE")

    async def test_validate_coupon_success(self, coupon_service, mock_coupon_repo, sample_coupon_db):
        """测试优惠券验证成功"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db

        result = await coupon_service.validate_coupon("save20", Decimal("150"))

        assert isinstance(result, CouponAccepted)
        assert result.message == "Coupon applied successfully"

    async def test_validate_unknown_coupon(self, coupon_service, mock_coupon_repo):
        mock_coupon_repo.get_by_code.return_value = None

        result = await coupon_service.validate_coupon("NOPE", Decimal("150"))

        assert result.valid is False
        assert result.message == "Invalid coupon code"

    async def test_validate_inactive_coupon(self, coupon_service, mock_coupon_repo, sample_coupon_db):
        """测试已停用的优惠券视为无效代码"""
        sample_coupon_db.is_active = False
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db

        result = await coupon_service.validate_coupon("SAVE20", Decimal("150"))

        assert result.reason == CouponRejectionReason.NOT_FOUND

    async def test_validate_does_not_use_cache(self, coupon_service, mock_cache, mock_coupon_repo, sample_coupon_db):
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db

        await coupon_service.validate_coupon("SAVE20", Decimal("150"))

        mock_cache.get.assert_not_called()

    async def test_price_cart_with_coupon(self, coupon_service, mock_coupon_repo, sample_coupon_db):
        """测试购物车计价应用优惠券"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db
        items = [CartItem(product_id="p-1", name="Desk Lamp", price=Decimal("75"), qty=2)]

        result = await coupon_service.price_cart(items, "save20")

        assert result.items_count == 2
        assert result.prices.items_price == Decimal("150")
        assert result.prices.shipping_price == Decimal("0")
        assert result.prices.tax_price == Decimal("15")
        assert result.prices.discount_amount == Decimal("30")
        assert result.prices.total_price == Decimal("135")
        assert result.prices.coupon_code == "SAVE20"

    async def test_price_cart_with_rejected_coupon(self, coupon_service, mock_coupon_repo, sample_coupon_db):
        """测试优惠券未达门槛时不打折并返回提示"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db
        items = [CartItem(product_id="p-1", name="Desk Lamp", price=Decimal("50"), qty=1)]

        result = await coupon_service.price_cart(items, "SAVE20")

        assert result.prices.discount_amount == Decimal("0")
        assert result.prices.total_price == Decimal("65")
        assert result.prices.coupon_code is None
        assert result.prices.coupon_message == "Minimum purchase of 100 required"

    async def test_price_cart_without_coupon(self, coupon_service, mock_coupon_repo):
        result = await coupon_service.price_cart([], "  ")

        assert result.items_count == 0
        assert result.prices.total_price == Decimal("10")
        mock_coupon_repo.get_by_code.assert_not_called()

    async def test_redeem_coupon(self, coupon_service, mock_coupon_repo, mock_cache, sample_coupon_db, sample_redemption_db):
        """测试下单核销优惠券"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db
        mock_coupon_repo.redeem.return_value = sample_redemption_db

        result = await coupon_service.redeem_coupon("save20", "order-001", "user-001", Decimal("150"))

        assert result.order_id == "order-001"
        assert result.discount_amount == Decimal("30")
        mock_coupon_repo.redeem.assert_called_once_with(
            code="SAVE20",
            order_id="order-001",
            user_id="user-001",
            subtotal=Decimal("150"),
            discount_amount=Decimal("30")
        )
        mock_cache.delete.assert_called_once_with("coupon:code:SAVE20")

    async def test_redeem_same_order_twice(self, coupon_service, mock_coupon_repo, sample_redemption_db):
        """测试同一订单重复核销返回已有记录"""
        mock_coupon_repo.get_redemption_by_order.return_value = sample_redemption_db

        result = await coupon_service.redeem_coupon("SAVE20", "order-001", "user-001", Decimal("150"))

        assert result.redemption_id == "r-001"
        mock_coupon_repo.redeem.assert_not_called()

    async def test_redeem_order_with_other_coupon(self, coupon_service, mock_coupon_repo, sample_redemption_db):
        mock_coupon_repo.get_redemption_by_order.return_value = sample_redemption_db

        with pytest.raises(CouponRedemptionConflict):
            await coupon_service.redeem_coupon("WELCOME10", "order-001", None, Decimal("150"))

    async def test_redeem_rejected_coupon(self, coupon_service, mock_coupon_repo, sample_coupon_db):
        """测试未通过校验的优惠券不能核销"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db

        with pytest.raises(CouponRejectedError) as exc_info:
            await coupon_service.redeem_coupon("SAVE20", "order-002", None, Decimal("80"))

        assert exc_info.value.message == "Minimum purchase of 100 required"
        assert exc_info.value.reason == "minimum_not_met"
        mock_coupon_repo.redeem.assert_not_called()

    async def test_redeem_when_limit_reached_concurrently(self, coupon_service, mock_coupon_repo, sample_coupon_db):
        """测试校验后被其他订单用完"""
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db
        mock_coupon_repo.redeem.return_value = None

        with pytest.raises(CouponRejectedError) as exc_info:
            await coupon_service.redeem_coupon("SAVE20", "order-003", None, Decimal("150"))

        assert exc_info.value.reason == "usage_limit_reached"
        assert exc_info.value.message == "Coupon usage limit reached"

    async def test_redeem_integrity_error(self, coupon_service, mock_coupon_repo, sample_coupon_db):
        mock_coupon_repo.get_by_code.return_value = sample_coupon_db
        mock_coupon_repo.redeem.side_effect = IntegrityError("INSERT", {}, Exception("duplicate order_id"))

        with pytest.raises(CouponRedemptionConflict):
            await coupon_service.redeem_coupon("SAVE20", "order-004", None, Decimal("150"))

    async def test_get_coupon_stats_not_found(self, coupon_service, mock_coupon_repo):
        mock_coupon_repo.get_coupon_stats.return_value = {}

        with pytest.raises(CouponNotFoundError):
            await coupon_service.get_coupon_stats("NOPE")

    async def test_seed_sample_coupons(self, coupon_service, mock_coupon_repo, mock_cache, sample_coupon_db):
        """测试写入示例优惠券时跳过已存在的"""
        mock_coupon_repo.get_by_code.side_effect = [None, sample_coupon_db, None]

        created = await coupon_service.seed_sample_coupons()

        assert created == 2
        codes = [call.args[0]["code"] for call in mock_coupon_repo.create.call_args_list]
        assert codes == ["WELCOME10", "SHIP5"]
        mock_cache.delete_pattern.assert_called_once_with("coupon:*")
