import logging

import pytest

from kuberay import errors
from kuberay.errors import (
    ApiError,
    CustomCode,
    CustomError,
    FlagError,
    SilentError,
    StatusCode,
    StatusError,
    UserError,
    WrappedError,
)


def test_invalid_input_error_fields():
    err = errors.new_invalid_input_error("Cluster name is empty.")
    assert err.external_message == "Cluster name is empty."
    assert err.external_status_code == StatusCode.INVALID_ARGUMENT
    assert str(err).startswith("Invalid input error: ")
    assert str(err).endswith("Cluster name is empty.")


def test_invalid_input_error_formats_arguments():
    err = errors.new_invalid_input_error("WorkerNodeSpec %d group name is empty.", 2)
    assert err.external_message == "WorkerNodeSpec 2 group name is empty."


def test_internal_server_error_hides_details():
    cause = ValueError("boom")
    err = errors.new_internal_server_error(cause, "Failed to create %s", "demo")
    assert err.external_message == "Internal Server Error"
    assert err.external_status_code == StatusCode.INTERNAL
    assert "InternalServerError: " in str(err)
    assert "boom" in str(err)
    assert err.cause.__cause__ is cause


def test_not_found_error():
    err = errors.new_not_found_error(ValueError("x"), "Cluster %s not found", "abc")
    assert err.external_status_code == StatusCode.NOT_FOUND
    assert err.external_message == "Cluster abc not found"
    assert str(err).startswith("NotFoundError: ")


def test_resource_not_found_error():
    err = errors.new_resource_not_found_error("Cluster", "demo")
    assert err.external_message == "Cluster demo not found."
    assert err.external_status_code == StatusCode.NOT_FOUND


def test_already_exist_error_code():
    err = errors.new_already_exist_error("Compute template with name %s", "t1")
    assert err.external_status_code == StatusCode.ALREADY_EXISTS
    assert str(err).startswith("Already exist error: ")


@pytest.mark.parametrize(
    "factory, code",
    [
        (errors.new_bad_request_error, StatusCode.ABORTED),
        (errors.new_unauthenticated_error, StatusCode.UNAUTHENTICATED),
        (errors.new_permission_denied_error, StatusCode.PERMISSION_DENIED),
    ],
)
def test_error_factories_codes(factory, code):
    err = factory(ValueError("inner"), "message %s", "here")
    assert err.external_status_code == code
    assert err.external_message == "message here"
    assert "inner" in str(err)


def test_wrap_user_error_keeps_external_parts():
    err = errors.new_invalid_input_error("bad")
    wrapped = errors.wrap(err, "context")
    assert isinstance(wrapped, UserError)
    assert wrapped.external_message == err.external_message
    assert wrapped.external_status_code == err.external_status_code
    assert str(wrapped).startswith("context")
    assert str(err) in str(wrapped)


def test_wrapf_user_error():
    err = errors.new_invalid_input_error("bad")
    wrapped = errors.wrapf(err, "ctx %s", "one")
    assert wrapped.external_message == "bad"
    assert str(wrapped).startswith("ctx one")


def test_wrap_plain_error():
    cause = ValueError("boom")
    wrapped = errors.wrap(cause, "ctx")
    assert isinstance(wrapped, WrappedError)
    assert wrapped.__cause__ is cause
    assert str(wrapped).startswith("ctx")
    assert str(wrapped).endswith("boom")


def test_wrap_none_is_none():
    assert errors.wrap(None, "ctx") is None
    assert errors.wrapf(None, "ctx %s", 1) is None


def test_new_user_error_api_not_found():
    api_err = ApiError("getCluster", 404)
    err = errors.new_user_error(api_err, "internal", "external")
    assert err.external_message.endswith("Resource not found")
    assert err.external_status_code == 404


def test_new_user_error_api_other_code():
    api_err = ApiError("getCluster", 500)
    err = errors.new_user_error(api_err, "internal", "external")
    assert "Raw error from the service" in err.external_message
    assert err.external_status_code == 500


def test_new_user_error_plain_is_internal():
    err = errors.new_user_error_with_single_message(ValueError("x"), "msg")
    assert err.external_status_code == StatusCode.INTERNAL
    assert err.external_message.startswith("msg")
    assert str(err).startswith("msg")


def test_extract_error_for_cli():
    err = errors.new_not_found_error(ValueError("x"), "missing")
    assert str(errors.extract_error_for_cli(err, False)) == "missing"
    assert str(errors.extract_error_for_cli(err, True)) == str(err.internal_error)
    plain = ValueError("plain")
    assert errors.extract_error_for_cli(plain, False) is plain


def test_custom_error_codes():
    err = errors.new_custom_errorf(CustomCode.NOT_FOUND, "gone %s", "now")
    assert isinstance(err, CustomError)
    assert errors.has_custom_code(err, CustomCode.NOT_FOUND)
    assert not errors.has_custom_code(err, CustomCode.GENERIC)
    assert not errors.has_custom_code(ValueError("x"), CustomCode.NOT_FOUND)
    assert "CustomError (code: " in str(err)


def test_custom_error_wraps_cause():
    cause = ValueError("root")
    err = errors.new_custom_error(cause, CustomCode.TRANSIENT, "retry")
    assert err.code == CustomCode.TRANSIENT
    assert str(err).endswith("root")


def test_is_not_found():
    assert errors.is_not_found(StatusError("NotFound", "missing"))
    assert not errors.is_not_found(StatusError("AlreadyExists", "dup"))
    assert not errors.is_not_found(ValueError("x"))


def test_is_user_error_code_match():
    err = errors.new_invalid_input_error("bad")
    assert errors.is_user_error_code_match(err, StatusCode.INVALID_ARGUMENT)
    assert not errors.is_user_error_code_match(err, StatusCode.INTERNAL)
    assert not errors.is_user_error_code_match(ValueError("x"), StatusCode.INTERNAL)


def test_error_string_without_stack_trace():
    err = errors.new_invalid_input_error("bad")
    text = err.error_string_without_stack_trace()
    assert text.startswith("bad: ")
    assert text.endswith(str(err.internal_error))
    assert err.grpc_status() == (StatusCode.INVALID_ARGUMENT, text)


def test_user_error_log_levels(caplog):
    caplog.set_level(logging.INFO, logger="kuberay.errors")
    errors.new_not_found_error(None, "nf").log()
    errors.new_permission_denied_error(None, "pd").log()
    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.INFO, logging.ERROR]


def test_log_error_plain(caplog):
    caplog.set_level(logging.INFO, logger="kuberay.errors")
    errors.log_error(ValueError("plain"))
    assert caplog.records[0].levelno == logging.ERROR
    assert "InternalError" in caplog.records[0].getMessage()


def test_flag_error_and_silent_error():
    inner = ValueError("bad flag")
    err = FlagError(inner)
    assert str(err) == "bad flag"
    assert err.__cause__ is inner
    assert str(SilentError()) == "SilentError"