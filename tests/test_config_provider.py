# tests/test_config_provider.py
from decimal import Decimal
import pytest

from somar.core.errors import InvalidGlobalConfig
from somar.shared.database.models import GlobalConfig
from somar.shared.services.config_provider import GlobalConfigProvider


def add_config(db, rider, platform, limit="300"):
    db.add(GlobalConfig(
        rider_share_percent=Decimal(rider),
        platform_share_percent=Decimal(platform),
        cash_custody_limit=Decimal(limit)
    ))
    db.commit()


def test_defaults_without_config_row(db):
    config = GlobalConfigProvider(ttl_seconds=60).get(db)

    assert config.rider_share_percent == Decimal("66.66")
    assert config.platform_share_percent == Decimal("33.34")
    assert config.cash_custody_limit == Decimal("300")


def test_config_row_is_cached_until_refresh(db):
    provider = GlobalConfigProvider(ttl_seconds=60)
    assert provider.get(db).cash_custody_limit == Decimal("300")

    add_config(db, "70", "30", "500")
    assert provider.get(db).cash_custody_limit == Decimal("300")
    assert provider.refresh(db).cash_custody_limit == Decimal("500")


def test_shares_that_do_not_add_up_are_rejected(db):
    add_config(db, "70", "20")

    with pytest.raises(InvalidGlobalConfig) as exc:
        GlobalConfigProvider(ttl_seconds=0).get(db)

    assert exc.value.status_code == 500
    assert exc.value.error_code == "INVALID_GLOBAL_CONFIG"
    assert Decimal(exc.value.details["platform_share_percent"]) == Decimal("20")
