"""Tests for the localized error envelope."""

from __future__ import annotations

from fireboom.core import CustomError, ErrCode, is_code, new_custom_error, render_message


class TestRenderMessage:
    def test_english_template(self) -> None:
        assert render_message(ErrCode.LoaderDataNotExistError, "en", "users/list") == "data [users/list] not exist"

    def test_chinese_template(self) -> None:
        assert render_message(ErrCode.LoaderDataNotExistError, "zh-cn", "a") == "数据[a]不存在"

    def test_unknown_locale_falls_back_to_english(self) -> None:
        assert render_message(ErrCode.LoaderDataNotExistError, "fr", "a") == "data [a] not exist"

    def test_missing_args_render_empty(self) -> None:
        assert render_message(ErrCode.LoaderDataNotExistError, "en") == "data [] not exist"


class TestCustomError:
    def test_to_dict(self) -> None:
        err = new_custom_error("operation", None, ErrCode.LoaderDataNotExistError, "users/list")
        assert err.to_dict() == {
            "mode": "operation",
            "code": 10506,
            "message": "data [users/list] not exist",
        }

    def test_to_dict_with_locale(self) -> None:
        err = new_custom_error("operation", None, ErrCode.LoaderDataNotExistError, "a")
        assert err.to_dict("zh-CN")["message"] == "数据[a]不存在"
        # locale rendering does not stick
        assert err.message == "data [a] not exist"

    def test_cause_appended(self) -> None:
        err = new_custom_error("storage", ValueError("bad key"), ErrCode.LoaderDataNotExistError, "s3")
        assert str(err) == "data [s3] not exist: bad key"

    def test_is_code(self) -> None:
        err = CustomError("role", ErrCode.LoaderDataNotExistError)
        assert is_code(err, ErrCode.LoaderDataNotExistError) is True
        assert is_code(err, ErrCode.ParamBindError) is False
        assert is_code(ValueError(), ErrCode.ParamBindError) is False
