"""
jute: Jupyter notebook documents and remote kernel sessions.

This package provides:
- A lossless model of the .ipynb format that keeps unknown fields
- An async client for the Jupyter server kernels REST API
- Remote kernel sessions connected over WebSocket
"""

from jute.errors import ConfigError, ConnectError, FormatError, JuteError, RemoteError
from jute.notebook import (
    Author,
    Cell,
    CellMetadata,
    CodeCell,
    KernelSpec,
    LanguageInfo,
    MarkdownCell,
    NotebookMetadata,
    NotebookRoot,
    Output,
    OutputDisplayData,
    OutputError,
    OutputExecuteResult,
    OutputStream,
    RawCell,
    load_notebook,
    multiline_text,
    normalize,
)
from jute.connection import KernelConnection, create_websocket_connection
from jute.remote import JupyterClient, KernelInfo, RemoteKernel

__version__ = "0.1.0"
__all__ = [
    "Author",
    "Cell",
    "CellMetadata",
    "CodeCell",
    "ConfigError",
    "ConnectError",
    "FormatError",
    "JupyterClient",
    "JuteError",
    "KernelConnection",
    "KernelInfo",
    "KernelSpec",
    "LanguageInfo",
    "MarkdownCell",
    "NotebookMetadata",
    "NotebookRoot",
    "Output",
    "OutputDisplayData",
    "OutputError",
    "OutputExecuteResult",
    "OutputStream",
    "RawCell",
    "RemoteError",
    "RemoteKernel",
    "create_websocket_connection",
    "load_notebook",
    "multiline_text",
    "normalize",
]
