from .archive import export_archive, import_archive
from .lock import DataLock, DataLocks
from .model import DataHook, DataMutation, EmbedDataRW, Model, MultipleDataRW, SingleDataRW
from .modifies import DataModifies, DataModifyDetail, merge_data
from .text import EmbedTextRW, ModelText, MultipleTextRW, SingleTextRW, default_basename
from .tree import DataTree

__all__ = [
    "DataHook",
    "DataLock",
    "DataLocks",
    "DataModifies",
    "DataModifyDetail",
    "DataMutation",
    "DataTree",
    "EmbedDataRW",
    "EmbedTextRW",
    "Model",
    "ModelText",
    "MultipleDataRW",
    "MultipleTextRW",
    "SingleDataRW",
    "SingleTextRW",
    "default_basename",
    "export_archive",
    "import_archive",
    "merge_data",
]
