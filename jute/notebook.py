"""
Notebook: typed model of the Jupyter ``.ipynb`` file format (nbformat v4).

Every object in the document is a pydantic model whose known fields are
typed. Keys the model does not know about are kept as extras and written
back unchanged, so a notebook survives a load/save cycle even when another
tool added its own metadata.

See https://nbformat.readthedocs.io/en/latest/format_description.html for
the format itself. As usual with pydantic modeling, the top-level model
(NotebookRoot) is at the bottom of this file.
"""

import json
from pathlib import Path
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    ValidationInfo,
    model_serializer,
    model_validator,
)

from jute.errors import FormatError


# A MIME bundle maps a content type to data; the values are opaque here.
MimeBundle = dict[str, Any]

# Attachments map a filename to the MIME bundle holding its data.
CellAttachments = dict[str, MimeBundle]

OutputMetadata = dict[str, Any]

# Text is stored either as one string or as a list of line fragments.
MultilineString = Union[StrictStr, list[StrictStr]]

# CodeMirror mode is either a mode name or an options mapping.
CodeMirrorMode = Union[StrictStr, dict[str, Any]]


def normalize(text: MultilineString) -> list[str]:
    """
    Convert text to the line-array form Jupyter writes to disk.

    All fragments are joined and split again after each newline, so every
    line keeps its trailing "\\n" except possibly the last one. Empty text
    becomes an empty list.

    Args:
        text: A string or a list of line fragments

    Returns:
        List of line fragments
    """
    value = multiline_text(text)
    parts = value.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def multiline_text(text: MultilineString) -> str:
    """Join a string or list of line fragments into a single string."""
    if isinstance(text, str):
        return text
    return "".join(text)


# Validation context for documents read from JSON.
DECODING = {"decoding": True}


class NotebookModel(BaseModel):
    """
    Base for every object in a notebook document.

    Unrecognized keys are accepted and kept in ``extras``. Fields listed in
    ``optional_keys`` are only written out when they were present in the
    source document or assigned afterwards. Fields listed in
    ``required_keys`` must be present when a document is decoded, even if
    the Python constructor gives them a default.
    """

    model_config = ConfigDict(extra="allow")

    optional_keys: ClassVar[tuple[str, ...]] = ()
    required_keys: ClassVar[tuple[str, ...]] = ()

    @property
    def extras(self) -> dict[str, Any]:
        """Keys that are not part of this object's typed fields."""
        if self.model_extra is None:
            return {}
        return self.model_extra

    @model_validator(mode="before")
    @classmethod
    def check_required_keys(cls, data: Any, info: ValidationInfo) -> Any:
        if not (info.context or {}).get("decoding") or not isinstance(data, dict):
            return data
        for key in cls.required_keys:
            if key not in data:
                raise ValueError(f"missing required key {key!r}")
        return data


    @model_serializer(mode="wrap")
    def serialize_known_and_extra(self, handler):
        data = handler(self)
        for key in self.optional_keys:
            if key not in self.model_fields_set:
                data.pop(key, None)
        return data


class KernelSpec(NotebookModel):
    """Kernel information stored in the notebook metadata."""
    name: StrictStr
    display_name: StrictStr


class LanguageInfo(NotebookModel):
    """Programming language of the notebook's code cells."""

    optional_keys: ClassVar[tuple[str, ...]] = (
        "codemirror_mode",
        "file_extension",
        "mimetype",
        "pygments_lexer",
    )

    name: StrictStr
    codemirror_mode: Optional[CodeMirrorMode] = None
    file_extension: Optional[StrictStr] = None
    mimetype: Optional[StrictStr] = None
    pygments_lexer: Optional[StrictStr] = None


class Author(NotebookModel):
    optional_keys: ClassVar[tuple[str, ...]] = ("name",)

    name: Optional[StrictStr] = None


class NotebookMetadata(NotebookModel):
    """Root-level metadata of the notebook."""

    optional_keys: ClassVar[tuple[str, ...]] = (
        "kernelspec",
        "language_info",
        "orig_nbformat",
        "title",
        "authors",
    )

    kernelspec: Optional[KernelSpec] = None
    language_info: Optional[LanguageInfo] = None
    orig_nbformat: Optional[StrictInt] = None  # format before conversion
    title: Optional[StrictStr] = None
    authors: Optional[list[Author]] = None


class CellMetadata(NotebookModel):
    """Per-cell metadata. No keys are interpreted at this layer."""


# Cell outputs modeled with a discriminator pattern where the output_type
# field determines the kind of output.
class OutputExecuteResult(NotebookModel):
    required_keys: ClassVar[tuple[str, ...]] = ("execution_count", "data", "metadata")

    output_type: Literal["execute_result"] = "execute_result"
    execution_count: Optional[StrictInt] = None
    data: MimeBundle = Field(default_factory=dict)
    metadata: OutputMetadata = Field(default_factory=dict)


class OutputDisplayData(NotebookModel):
    required_keys: ClassVar[tuple[str, ...]] = ("data", "metadata")

    output_type: Literal["display_data"] = "display_data"
    data: MimeBundle = Field(default_factory=dict)
    metadata: OutputMetadata = Field(default_factory=dict)


class OutputStream(NotebookModel):
    output_type: Literal["stream"] = "stream"
    name: StrictStr  # stdout or stderr
    text: MultilineString


class OutputError(NotebookModel):
    required_keys: ClassVar[tuple[str, ...]] = ("traceback",)

    output_type: Literal["error"] = "error"
    ename: StrictStr
    evalue: StrictStr
    traceback: list[StrictStr] = Field(default_factory=list)


# Use: list[Output] or TypeAdapter(Output).validate_python(data)
Output = Annotated[
    Union[OutputExecuteResult, OutputDisplayData, OutputStream, OutputError],
    Field(discriminator="output_type"),
]


class CellBase(NotebookModel):
    """
    All cell types have an optional id, metadata and source.

    The source keeps whichever form (string or line list) it was read in;
    use ``source_text`` for the joined string.
    """

    optional_keys: ClassVar[tuple[str, ...]] = ("id",)
    required_keys: ClassVar[tuple[str, ...]] = ("metadata",)

    id: Optional[StrictStr] = None
    metadata: CellMetadata = Field(default_factory=CellMetadata)
    source: MultilineString

    @property
    def source_text(self) -> str:
        return multiline_text(self.source)


class RawCell(CellBase):
    optional_keys: ClassVar[tuple[str, ...]] = ("id", "attachments")

    cell_type: Literal["raw"] = "raw"
    attachments: Optional[CellAttachments] = None


class MarkdownCell(CellBase):
    optional_keys: ClassVar[tuple[str, ...]] = ("id", "attachments")

    cell_type: Literal["markdown"] = "markdown"
    attachments: Optional[CellAttachments] = None


class CodeCell(CellBase):
    required_keys: ClassVar[tuple[str, ...]] = ("metadata", "execution_count", "outputs")

    cell_type: Literal["code"] = "code"
    execution_count: Optional[StrictInt] = None  # None until the cell has run
    outputs: list[Output] = Field(default_factory=list)

    def clear_outputs(self):
        """Drop all outputs and mark the cell as not executed."""
        self.outputs = []
        self.execution_count = None


# Use: list[Cell] or TypeAdapter(Cell).validate_python(data)
Cell = Annotated[
    Union[RawCell, MarkdownCell, CodeCell],
    Field(discriminator="cell_type"),
]


def _format_error(exc: ValidationError) -> FormatError:
    """Turn the first pydantic validation error into a FormatError."""
    errors = exc.errors()
    first = errors[0]
    location = ".".join(str(part) for part in first["loc"]) or None
    message = first["msg"]
    if len(errors) > 1:
        message = f"{message} (and {len(errors) - 1} more errors)"
    return FormatError(message, location=location)


class NotebookRoot(NotebookModel):
    """
    A whole ``.ipynb`` document.

    A notebook contains:
    - Root metadata (kernelspec, language info, authors, ...)
    - Format version numbers (nbformat, nbformat_minor)
    - An ordered list of raw, markdown and code cells
    """

    metadata: NotebookMetadata
    nbformat_minor: StrictInt
    nbformat: StrictInt
    cells: list[Cell]

    @classmethod
    def new(
        cls,
        kernelspec: Optional[KernelSpec] = None,
        language_info: Optional[LanguageInfo] = None,
    ) -> "NotebookRoot":
        """Create a new empty nbformat 4.5 notebook."""
        metadata = {}
        if kernelspec is not None:
            metadata["kernelspec"] = kernelspec
        if language_info is not None:
            metadata["language_info"] = language_info
        return cls(
            metadata=NotebookMetadata(**metadata),
            nbformat=4,
            nbformat_minor=5,
            cells=[],
        )

    @classmethod
    def from_json(cls, data: Union[bytes, str]) -> "NotebookRoot":
        """
        Decode a notebook from JSON text.

        Args:
            data: UTF-8 encoded JSON document

        Returns:
            Decoded notebook

        Raises:
            FormatError: If the JSON is malformed or does not match the format
        """
        try:
            return cls.model_validate_json(data, context=DECODING)
        except ValidationError as e:
            raise _format_error(e) from e

    @classmethod
    def from_dict(cls, data: dict) -> "NotebookRoot":
        """Create from an already-parsed JSON object."""
        try:
            return cls.model_validate(data, context=DECODING)
        except ValidationError as e:
            raise _format_error(e) from e

    def to_dict(self) -> dict:
        """Convert to a JSON-compatible dictionary, extras included."""
        return self.model_dump(mode="json")

    def to_json(self, indent: int = 1) -> str:
        """Encode the notebook the way Jupyter lays it out on disk."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True, ensure_ascii=False) + "\n"

    def normalize_text(self):
        """Rewrite cell sources and stream texts into line-array form."""
        for cell in self.cells:
            cell.source = normalize(cell.source)
            if isinstance(cell, CodeCell):
                for output in cell.outputs:
                    if isinstance(output, OutputStream):
                        output.text = normalize(output.text)

    def save(self, path: Path):
        """
        Save notebook to an ``.ipynb`` file.

        Args:
            path: Path to save to
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "NotebookRoot":
        """
        Load notebook from an ``.ipynb`` file.

        Args:
            path: Path to load from

        Returns:
            Loaded notebook

        Raises:
            FormatError: If the file is not a valid notebook
        """
        return cls.from_json(Path(path).read_bytes())


def load_notebook(path: Path) -> NotebookRoot:
    """Read the notebook stored at ``path``."""
    return NotebookRoot.load(path)
