"""上传文件的文本抽取。

FILE_EXTRACTORS 以扩展名为键，未登记的扩展名直接报
UnsupportedFileTypeError。PDF 解析是 CPU 密集操作，放到线程中执行，
避免阻塞事件循环。
"""

import asyncio
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Union

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from chat_core.domain.exceptions import FileParseError, UnsupportedFileTypeError
from chat_core.domain.session import URLDetailContent


@dataclass
class FileWrap:
    """一个已上传的文件：文件名 + 原始字节。"""

    name: str
    data: bytes

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lstrip(".").lower()

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "FileWrap":
        p = Path(path)
        return cls(name=p.name, data=p.read_bytes())


def _read_pdf(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages).strip()


async def extract_pdf_text(data: bytes, source: str = "") -> str:
    try:
        text = await asyncio.to_thread(_read_pdf, data)
    except (PdfReadError, ValueError) as e:
        raise FileParseError(code="FILE_PARSE_ERROR", message=f"Failed to parse PDF {source}: {e}", source=source)
    if not text:
        raise FileParseError(
            code="FILE_PARSE_ERROR",
            message=f"PDF {source} contains no extractable text",
            source=source,
        )
    return text


class PDFFile:
    def __init__(self, file: FileWrap):
        self._file = file

    async def get_file_detail(self) -> URLDetailContent:
        content = await extract_pdf_text(self._file.data, source=self._file.name)
        return URLDetailContent(
            url=self._file.name,
            size=self._file.size,
            type="application/pdf",
            content=content,
        )


class PlainTextFile:
    def __init__(self, file: FileWrap):
        self._file = file

    async def get_file_detail(self) -> URLDetailContent:
        return URLDetailContent(
            url=self._file.name,
            size=self._file.size,
            type="text/plain",
            content=self._file.data.decode("utf-8", errors="replace"),
        )


FILE_EXTRACTORS: Dict[str, Callable[[FileWrap], Union[PDFFile, PlainTextFile]]] = {
    "pdf": PDFFile,
    "txt": PlainTextFile,
}


async def get_detail_content_from_file(file: FileWrap) -> URLDetailContent:
    extractor = FILE_EXTRACTORS.get(file.extension)
    if extractor is None:
        raise UnsupportedFileTypeError(
            code="UNSUPPORTED_FILE_TYPE",
            message="Not supported file type",
            filename=file.name,
        )
    return await extractor(file).get_file_detail()
