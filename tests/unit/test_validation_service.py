import pytest

from wine_discovery.models.schemas import RejectionReason, WineRecord
from wine_discovery.services.validation_service import ValidationOutcome, ValidationService
from wine_discovery.utils.retry import ValidationRejectedError


@pytest.fixture
def service():
    return ValidationService(current_year=lambda: 2024)


def wine(**overrides) -> WineRecord:
    fields = {"winery": "Tabor Winery", "wine_name": "Adama", "vintage": "2018", "alcohol_content": 14.0}
    fields.update(overrides)
    return WineRecord(**fields)


def test_valid_wine_is_marked_validated(service):
    record = wine()
    outcome = service.validate(record)
    assert outcome == ValidationOutcome.accept()
    assert record.validated is True


def test_missing_alcohol_is_accepted(service):
    assert service.validate(wine(alcohol_content=None)).accepted is True


@pytest.mark.parametrize("overrides,reason", [
    ({"winery": ""}, RejectionReason.BLANK_WINERY),
    ({"winery": "   "}, RejectionReason.BLANK_WINERY),
    ({"wine_name": ""}, RejectionReason.BLANK_WINE_NAME),
    ({"vintage": ""}, RejectionReason.INVALID_VINTAGE),
    ({"vintage": "1899"}, RejectionReason.INVALID_VINTAGE),
    ({"vintage": "2025"}, RejectionReason.INVALID_VINTAGE),
    ({"vintage": "20x8"}, RejectionReason.INVALID_VINTAGE),
    ({"vintage": "-2018"}, RejectionReason.INVALID_VINTAGE),
    ({"alcohol_content": 25.0}, RejectionReason.ALCOHOL_OUT_OF_RANGE),
    ({"alcohol_content": 4.9}, RejectionReason.ALCOHOL_OUT_OF_RANGE),
])
def test_rejections(service, overrides, reason):
    record = wine(**overrides)
    outcome = service.validate(record)
    assert outcome.accepted is False
    assert outcome.reason == reason
    assert outcome.message
    assert record.validated is False


@pytest.mark.parametrize("vintage", ["1900", "2024", "NV", "nv", "Nv"])
def test_vintage_bounds_accepted(service, vintage):
    assert service.validate(wine(vintage=vintage)).accepted is True


@pytest.mark.parametrize("alcohol", [5.0, 22.0, 13.5])
def test_alcohol_bounds_accepted(service, alcohol):
    assert service.validate(wine(alcohol_content=alcohol)).accepted is True


def test_first_violation_wins(service):
    outcome = service.validate(wine(winery="", wine_name="", vintage="1700", alcohol_content=50.0))
    assert outcome.reason == RejectionReason.BLANK_WINERY


def test_ensure_valid_raises(service):
    with pytest.raises(ValidationRejectedError) as exc:
        service.ensure_valid(wine(alcohol_content=25.0))
    assert exc.value.reason == RejectionReason.ALCOHOL_OUT_OF_RANGE


def test_ensure_valid_returns_record(service):
    record = wine()
    assert service.ensure_valid(record) is record
    assert record.validated is True


def test_default_year_is_current():
    from datetime import datetime

    service = ValidationService()
    assert service.validate(wine(vintage=str(datetime.now().year))).accepted is True
    assert service.validate(wine(vintage=str(datetime.now().year + 1))).accepted is False
