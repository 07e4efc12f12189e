from myitreturn.core import templates
from myitreturn.core.templates import format_attribute, format_date, format_purpose


def test_format_date():
    assert format_date(0) == "01/01/1970"
    assert format_date("86400") == "02/01/1970"
    assert format_date(None) == ""
    assert format_date("yesterday") == ""


def test_format_date_out_of_range_epoch(monkeypatch):
    class OutOfRangeDatetime:
        @staticmethod
        def fromtimestamp(*args, **kwargs):
            raise OSError("Value too large")

    monkeypatch.setattr(templates, "datetime", OutOfRangeDatetime)

    assert format_date(1e18) == ""


def test_format_purpose_and_attribute():
    assert format_purpose("ibm-oauth-scope") == "OAuth Scope"
    assert format_purpose("ITR_FILING", 2) == "ITR_FILING (Version 2)"
    assert format_attribute("") == "–"
