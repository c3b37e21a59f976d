"""
Parameter ingestion: the shared parameter store, the CSV data logger and the
handler receiving values pushed by the host.
"""

from .store import ParameterStore, ParameterSnapshot, get_hd_camera_label
from .data_logger import DataLogger
from .handler import DataHandler, ParameterSource, load_parameters_to_enable

__all__ = [
    "ParameterStore", "ParameterSnapshot", "get_hd_camera_label",
    "DataLogger", "DataHandler", "ParameterSource", "load_parameters_to_enable",
]
