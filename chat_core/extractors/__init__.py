"""用户输入的内容抽取器。

- url: 判断输入是否为链接，并抓取网页/PDF/纯文本内容。
- files: 按扩展名解析上传的文件（pdf、txt）。

所有抽取器都返回 URLDetailContent（元数据 + 正文）。
"""

from chat_core.extractors.files import FileWrap, get_detail_content_from_file
from chat_core.extractors.url import fetch_site_content, is_url

__all__ = ["FileWrap", "get_detail_content_from_file", "fetch_site_content", "is_url"]
