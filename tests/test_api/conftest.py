"""
API测试fixtures - 使用模拟Repository，不依赖真实数据库和Redis
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from storefront.api.dependencies import get_coupon_service
from storefront.main import app
from storefront.models.database.coupon_db import CouponDB
from storefront.repositories.coupon_repository import CouponRepository
from storefront.services.coupon_service import CouponService


@pytest.fixture
def mock_coupon_repo():
    repo = AsyncMock(spec=CouponRepository)
    converter = CouponRepository(None)
    repo.to_model.side_effect = converter.to_model
    repo.to_redemption_model.side_effect = converter.to_redemption_model
    repo.get_redemption_by_order.return_value = None
    repo.get_by_code.return_value = None
    return repo


@pytest.fixture
def mock_cache():
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    return cache


@pytest.fixture
def client(mock_coupon_repo, mock_cache):
    """测试客户端，不触发lifespan"""
    def override_coupon_service():
        service = CouponService(mock_coupon_repo)
        service.cache = mock_cache
        return service

    app.dependency_overrides[get_coupon_service] = override_coupon_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def save20_db():
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
        usage_limit=None,
        used_count=0,
        is_active=True
    )
