"""
Error codes and the localized error envelope.

Every failure that reaches an HTTP client is a ``CustomError``. It carries the
business mode (usually a model name), an ``ErrCode`` and a message rendered
for a locale. The HTTP layer serializes it as ``{mode, code, message}``.

Usage:
    from fireboom.core.errcode import ErrCode, new_custom_error

    raise new_custom_error("operation", None, ErrCode.LoaderDataNotExistError, "users/list")
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional


class ErrCode(IntEnum):
    """Enumerated error kinds, grouped by hundred blocks."""

    ServerError = 10101

    ParamIllegalError = 10201
    ParamBindError = 10202
    StructParamEmtpyError = 10203
    BodyParamEmptyError = 10204
    PathParamEmptyError = 10205
    QueryParamEmptyError = 10206
    FormParamEmptyError = 10207

    RequestResubmitError = 10301
    RequestSignatureError = 10302
    RequestReadBodyError = 10303
    RequestEmptyBodyError = 10304
    RequestProxyError = 10305

    FileReadError = 10401
    FileWriteError = 10402
    FileZipError = 10403
    FileUnZipError = 10404
    FileZipAmountZeroError = 10405
    FileContentEmptyError = 10406
    DirectoryReadError = 10407

    LoaderFileReadError = 10501
    LoaderFileNotExistError = 10502
    LoaderFileUnmarshalError = 10503
    LoaderDataExistEditorError = 10504
    LoaderDataExistError = 10505
    LoaderDataNotExistError = 10506
    LoaderLockNotFoundError = 10507
    LoaderWatcherNotSupport = 10508
    LoaderNoneModifiedError = 10509
    LoaderRWNotSupportError = 10510
    LoaderNameEmptyError = 10511
    LoaderBasenameEmptyErr = 10512
    LoaderRootOrExtensionEmptyErr = 10513
    LoaderMultipleOnlyError = 10514
    LoaderEmbedNotAllowModifyErr = 10515
    LoaderRemoveKeyNotFoundError = 10516
    LoaderRenameKeyNotFoundError = 10517
    LoaderRenameTargetExistError = 10518
    LoaderRenameNotAllowMultipleError = 10519
    LoaderWriteableRelyModelRequiredError = 10520
    LoaderDataFilepathError = 10521

    VscodeOnlyDirectoriesCanWatchError = 10601
    VscodeDirectoryExistError = 10602
    VscodeFileExistError = 10603
    VscodeFileNotExistError = 10604
    VscodeSourceNotDirectoryError = 10605
    VscodeTargetDirectoryExistError = 10606

    EngineCreateConfigError = 20101
    EngineRestartError = 20102

    DataInsertError = 20201
    DataDeleteError = 20202
    DataUpdateError = 20203
    DataSelectError = 20204
    DataCopyError = 20205
    DataRenameError = 20206
    DataBatchInsertError = 20207
    DataBatchDeleteError = 20208
    DataBatchUpdateError = 20209
    DataEmptyListError = 20210
    DataNotExistsError = 20211

    DatasourceConnectionError = 20301
    DatasourceKindNotSupportedError = 20302
    DatasourceDisabledError = 20303
    DatasourceDatabaseUrlEmptyError = 20304
    DatabaseOasVersionError = 20305
    PrismaQueryError = 20306
    PrismaMigrateError = 20307
    PrismaCreateMigrationError = 20308
    PrismaApplyMigrationError = 20309
    PrismaDiffError = 20310

    StoragePingError = 20401
    StorageDisabledError = 20402
    StorageMkdirError = 20403
    StorageTouchError = 20404
    StorageRemoveError = 20405
    StorageRenameError = 20406
    StorageListError = 20407
    StorageDetailError = 20408
    StorageDownloadError = 20409

    OperationRoleHasBindError = 20501
    OperationRbacTypeError = 20502

    SettingServerUrlEmptyError = 20601

    SdkAlreadyUpToDateError = 20701


DEFAULT_LOCALE = "en"

_MESSAGES: dict[str, dict[ErrCode, str]] = {
    "en": {
        ErrCode.ServerError: "server internal error",
        ErrCode.ParamIllegalError: "parameter [%s] is illegal",
        ErrCode.ParamBindError: "failed to bind parameters",
        ErrCode.StructParamEmtpyError: "struct parameter [%s] is empty",
        ErrCode.BodyParamEmptyError: "request body is empty",
        ErrCode.PathParamEmptyError: "path parameter [%s] is empty",
        ErrCode.QueryParamEmptyError: "query parameter [%s] is empty",
        ErrCode.FormParamEmptyError: "form parameter [%s] is empty",
        ErrCode.RequestResubmitError: "request resubmitted",
        ErrCode.RequestSignatureError: "request signature invalid",
        ErrCode.RequestReadBodyError: "failed to read request body",
        ErrCode.RequestEmptyBodyError: "request body is empty",
        ErrCode.RequestProxyError: "failed to proxy request to [%s]",
        ErrCode.FileReadError: "failed to read file [%s]",
        ErrCode.FileWriteError: "failed to write file [%s]",
        ErrCode.FileZipError: "failed to zip files",
        ErrCode.FileUnZipError: "failed to unzip file",
        ErrCode.FileZipAmountZeroError: "no files found to zip",
        ErrCode.FileContentEmptyError: "file [%s] content is empty",
        ErrCode.DirectoryReadError: "failed to read directory [%s]",
        ErrCode.LoaderFileReadError: "failed to read file [%s]",
        ErrCode.LoaderFileNotExistError: "file [%s] not exist",
        ErrCode.LoaderFileUnmarshalError: "failed to unmarshal file [%s]",
        ErrCode.LoaderDataExistEditorError: "[%s] is being edited by [%s]",
        ErrCode.LoaderDataExistError: "data [%s] already exists",
        ErrCode.LoaderDataNotExistError: "data [%s] not exist",
        ErrCode.LoaderLockNotFoundError: "lock for [%s] not found",
        ErrCode.LoaderWatcherNotSupport: "watcher [%s] not supported",
        ErrCode.LoaderNoneModifiedError: "data [%s] has no modification",
        ErrCode.LoaderRWNotSupportError: "data read/write kind not supported",
        ErrCode.LoaderNameEmptyError: "data name is empty",
        ErrCode.LoaderBasenameEmptyErr: "basename is empty",
        ErrCode.LoaderRootOrExtensionEmptyErr: "root or extension is empty",
        ErrCode.LoaderMultipleOnlyError: "only multiple data model supported",
        ErrCode.LoaderEmbedNotAllowModifyErr: "embed data not allowed to modify",
        ErrCode.LoaderRemoveKeyNotFoundError: "remove key [%s] not found",
        ErrCode.LoaderRenameKeyNotFoundError: "rename key [%s] not found",
        ErrCode.LoaderRenameTargetExistError: "rename target [%s] already exists",
        ErrCode.LoaderRenameNotAllowMultipleError: "rename not allowed for multiple targets",
        ErrCode.LoaderWriteableRelyModelRequiredError: "writeable text requires rely model",
        ErrCode.LoaderDataFilepathError: "data name [%s] not match filepath [%s]",
        ErrCode.VscodeOnlyDirectoriesCanWatchError: "only directories can be watched",
        ErrCode.VscodeDirectoryExistError: "directory [%s] already exists",
        ErrCode.VscodeFileExistError: "file [%s] already exists",
        ErrCode.VscodeFileNotExistError: "file [%s] not exist",
        ErrCode.VscodeSourceNotDirectoryError: "source [%s] is not a directory",
        ErrCode.VscodeTargetDirectoryExistError: "target directory [%s] already exists",
        ErrCode.EngineCreateConfigError: "failed to create engine configuration",
        ErrCode.EngineRestartError: "failed to restart engine",
        ErrCode.DataInsertError: "failed to insert data",
        ErrCode.DataDeleteError: "failed to delete data",
        ErrCode.DataUpdateError: "failed to update data",
        ErrCode.DataSelectError: "failed to select data",
        ErrCode.DataCopyError: "failed to copy data",
        ErrCode.DataRenameError: "failed to rename data",
        ErrCode.DataBatchInsertError: "failed to batch insert data",
        ErrCode.DataBatchDeleteError: "failed to batch delete data",
        ErrCode.DataBatchUpdateError: "failed to batch update data",
        ErrCode.DataEmptyListError: "data list is empty",
        ErrCode.DataNotExistsError: "data [%s] not exists",
        ErrCode.DatasourceConnectionError: "failed to connect datasource [%s]",
        ErrCode.DatasourceKindNotSupportedError: "datasource kind [%s] not supported",
        ErrCode.DatasourceDisabledError: "datasource [%s] is disabled",
        ErrCode.DatasourceDatabaseUrlEmptyError: "database url of [%s] is empty",
        ErrCode.DatabaseOasVersionError: "openapi version [%s] not supported",
        ErrCode.PrismaQueryError: "prisma query failed",
        ErrCode.PrismaMigrateError: "prisma migrate failed",
        ErrCode.PrismaCreateMigrationError: "prisma create migration failed",
        ErrCode.PrismaApplyMigrationError: "prisma apply migration failed",
        ErrCode.PrismaDiffError: "prisma diff failed",
        ErrCode.StoragePingError: "failed to ping storage [%s]",
        ErrCode.StorageDisabledError: "storage [%s] is disabled",
        ErrCode.StorageMkdirError: "failed to make directory [%s]",
        ErrCode.StorageTouchError: "failed to touch file [%s]",
        ErrCode.StorageRemoveError: "failed to remove [%s]",
        ErrCode.StorageRenameError: "failed to rename [%s]",
        ErrCode.StorageListError: "failed to list [%s]",
        ErrCode.StorageDetailError: "failed to read detail of [%s]",
        ErrCode.StorageDownloadError: "failed to download [%s]",
        ErrCode.OperationRoleHasBindError: "role [%s] is bound by operations %s",
        ErrCode.OperationRbacTypeError: "rbac type [%s] not supported",
        ErrCode.SettingServerUrlEmptyError: "server url is empty",
        ErrCode.SdkAlreadyUpToDateError: "sdk [%s] already up to date",
    },
    "zh-cn": {
        ErrCode.ServerError: "服务器内部错误",
        ErrCode.ParamBindError: "参数绑定失败",
        ErrCode.BodyParamEmptyError: "请求体为空",
        ErrCode.PathParamEmptyError: "路径参数[%s]为空",
        ErrCode.QueryParamEmptyError: "查询参数[%s]为空",
        ErrCode.LoaderDataExistError: "数据[%s]已存在",
        ErrCode.LoaderDataNotExistError: "数据[%s]不存在",
        ErrCode.LoaderNoneModifiedError: "数据[%s]无变更",
        ErrCode.LoaderNameEmptyError: "数据名称为空",
        ErrCode.LoaderDataExistEditorError: "[%s]正在被[%s]编辑",
        ErrCode.LoaderRenameTargetExistError: "重命名目标[%s]已存在",
        ErrCode.OperationRbacTypeError: "不支持的rbac类型[%s]",
        ErrCode.EngineRestartError: "引擎重启失败",
    },
}


def supported_locale(locale: Optional[str]) -> bool:
    """Return True when ``locale`` has a message table."""
    return bool(locale) and locale.lower() in _MESSAGES


def render_message(code: ErrCode, locale: str = DEFAULT_LOCALE, *args: Any) -> str:
    """Render the message template of ``code`` for ``locale``."""
    table = _MESSAGES.get((locale or DEFAULT_LOCALE).lower(), {})
    template = table.get(code) or _MESSAGES[DEFAULT_LOCALE].get(code, code.name)
    if "%s" not in template:
        return template
    placeholders = template.count("%s")
    values = tuple(str(a) for a in args[:placeholders])
    values += ("",) * (placeholders - len(values))
    return template % values


class CustomError(Exception):
    """
    Error carrying a business mode, an ErrCode and a localized message.

    Args:
        mode: Business module that raised it, usually a model name
        code: Enumerated error kind
        args: Values substituted into the message template
        cause: Wrapped lower-level exception
    """

    def __init__(
        self,
        mode: str,
        code: ErrCode,
        args: tuple = (),
        cause: Optional[BaseException] = None,
        locale: str = DEFAULT_LOCALE,
    ):
        self.mode = mode
        self.code = code
        self.format_args = args
        self.cause = cause
        self.locale = locale
        super().__init__(self.message)

    @property
    def message(self) -> str:
        text = render_message(self.code, self.locale, *self.format_args)
        if self.cause is not None:
            cause_text = self.cause.render(self.locale) if isinstance(self.cause, CustomError) else str(self.cause)
            if cause_text:
                text = f"{text}: {cause_text}"
        return text

    def render(self, locale: str) -> str:
        """Render the full message chain for ``locale``."""
        if not supported_locale(locale):
            return self.message
        previous, self.locale = self.locale, locale.lower()
        try:
            return self.message
        finally:
            self.locale = previous

    def to_dict(self, locale: Optional[str] = None) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "code": int(self.code),
            "message": self.render(locale) if locale else self.message,
        }

    def __str__(self) -> str:
        return self.message


def new_custom_error(mode: str, cause: Optional[BaseException], code: ErrCode, *args: Any) -> CustomError:
    """Build a CustomError for ``mode`` wrapping ``cause``."""
    return CustomError(mode, code, args=args, cause=cause)


def is_code(err: BaseException, code: ErrCode) -> bool:
    """Check whether ``err`` is a CustomError with ``code``."""
    return isinstance(err, CustomError) and err.code == code
