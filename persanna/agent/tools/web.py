"""
网页浏览工具模块 (agent/tools/web.py)

模块职责：
    WebBrowserTool 让 Agent 能够"阅读"一个网页并回答与之相关的问题：
      1. 抓取 URL（httpx）并提取可读正文（readability-lxml → 简化 Markdown）
      2. 将正文切分为若干重叠的文本块
      3. 有具体任务时，用向量模型计算任务与各块的余弦相似度，取最相关的 top_k 块；
         没有任务时直接取前 top_k 块做总结
      4. 把选出的文本交给语言模型，生成摘要/答案以及最多 5 个相关链接

输入格式：
    以逗号分隔的两个值："ONE valid http URL including protocol","what you want to find on the page"
    第二个值为空字符串时表示"总结整个页面"。

技术选型：
    - HTTP 客户端：httpx（异步，类似 Java 的 OkHttp）
    - 正文提取：readability-lxml（Mozilla Readability 的 Python 实现）
    - 相似度计算：numpy

安全设计：
    - URL 校验：只允许 http/https 协议
    - 重定向限制：最多 5 次
    - 输出截断：正文最多 max_chars 字符
"""

import html
import re
from typing import Callable
from urllib.parse import urlparse

import httpx
import numpy as np
from loguru import logger

from persanna.agent.tools.base import Tool
from persanna.config.schema import WebBrowserConfig
from persanna.errors import ToolError
from persanna.providers.base import LLMProvider

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_7_2) AppleWebKit/537.36"
MAX_REDIRECTS = 5

SUMMARY_PROMPT = (
    "Text:{context}\n\n"
    "I need {task} from the above text, also provide up to 5 markdown links from within that would be "
    "of interest (always including URL and text). Links should be provided, if present, in markdown "
    'syntax as a list under the heading "Relevant Links:".'
)


def _strip_tags(text: str) -> str:
    """去除 HTML 标签并解码 HTML 实体（先移除 script/style 块）。"""
    text = re.sub(r'<script[\s\S]*?</script>', '', text, flags=re.I)
    text = re.sub(r'<style[\s\S]*?</style>', '', text, flags=re.I)
    text = re.sub(r'<[^>]+>', '', text)
    return html.unescape(text).strip()


def _normalize(text: str) -> str:
    """压缩水平空白，3 个以上换行压缩为双换行。"""
    text = re.sub(r'[ \t]+', ' ', text)
    return re.sub(r'\n{3,}', '\n\n', text).strip()


def _validate_url(url: str) -> tuple[bool, str]:
    """
    校验 URL 安全性：只允许 http/https，且必须有域名。

    返回:
        (是否合法, 错误信息)
    """
    try:
        p = urlparse(url)
        if p.scheme not in ('http', 'https'):
            return False, f"Only http/https allowed, got '{p.scheme or 'none'}'"
        if not p.netloc:
            return False, "Missing domain"
        return True, ""
    except ValueError as e:
        return False, str(e)


def _to_markdown(html_text: str) -> str:
    """
    将 HTML 片段转换为简化版 Markdown。

    转换规则：
    - <a href="url">text</a> → [text](url)
    - <h1>~<h6> → # ~ ######
    - <li> → - 列表项
    - <p>/<div> → 段落分隔
    - <br>/<hr> → 换行
    """
    text = re.sub(r'<a\s+[^>]*href=["\']([^"\']+)["\'][^>]*>([\s\S]*?)</a>',
                  lambda m: f'[{_strip_tags(m[2])}]({m[1]})', html_text, flags=re.I)
    text = re.sub(r'<h([1-6])[^>]*>([\s\S]*?)</h\1>',
                  lambda m: f'\n{"#" * int(m[1])} {_strip_tags(m[2])}\n', text, flags=re.I)
    text = re.sub(r'<li[^>]*>([\s\S]*?)</li>', lambda m: f'\n- {_strip_tags(m[1])}', text, flags=re.I)
    text = re.sub(r'</(p|div|section|article)>', '\n\n', text, flags=re.I)
    text = re.sub(r'<(br|hr)\s*/?>', '\n', text, flags=re.I)
    return _normalize(_strip_tags(text))


def parse_inputs(argument: str) -> tuple[str, str]:
    """
    解析工具输入 "url","task"。

    只在第一个逗号处切分，去除两端引号、空白和 URL 末尾的斜杠。
    """
    def clean(part: str) -> str:
        part = part.strip()
        part = part[1:] if part.startswith('"') else part
        part = part[:-1] if part.endswith('"') else part
        part = part[:-1] if part.endswith("/") else part
        return part.strip()

    url, _, task = argument.partition(",")
    return clean(url), clean(task)


def split_text(text: str, chunk_size: int = 2000, overlap: int = 200) -> list[str]:
    """
    将正文切分为不超过 chunk_size 的文本块，相邻块保留 overlap 字符重叠。

    优先在段落边界切分；单个段落过长时按字符硬切。
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    overlap = max(0, min(overlap, chunk_size // 2))

    pieces: list[str] = []
    for para in (p.strip() for p in text.split("\n\n")):
        if not para:
            continue
        if len(para) <= chunk_size:
            pieces.append(para)
            continue
        step = chunk_size - overlap
        pieces.extend(para[i:i + chunk_size] for i in range(0, len(para), step))

    chunks: list[str] = []
    current = ""
    for piece in pieces:
        if current and len(current) + 2 + len(piece) > chunk_size:
            chunks.append(current)
            tail = current[-overlap:] if overlap else ""
            current = f"{tail}\n\n{piece}" if tail and len(tail) + 2 + len(piece) <= chunk_size else piece
        else:
            current = f"{current}\n\n{piece}" if current else piece
    if current:
        chunks.append(current)
    return chunks


def rank_chunks(query_vec: list[float], chunk_vecs: list[list[float]], top_k: int) -> list[int]:
    """
    按余弦相似度从高到低返回最相关的 top_k 个块的下标。
    """
    if not chunk_vecs:
        return []
    q = np.asarray(query_vec, dtype=float)
    m = np.asarray(chunk_vecs, dtype=float)
    norms = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
    scores = np.divide(m @ q, norms, out=np.zeros(len(m)), where=norms > 0)
    order = np.argsort(-scores, kind="stable")
    return [int(i) for i in order[:top_k]]


class WebBrowserTool(Tool):
    """
    网页浏览工具：抓取页面、按任务挑选相关段落，并让模型给出总结或答案。

    属性:
        provider: 用于总结与向量计算的 LLM 提供者
        model: 总结使用的模型名称
        embedding_model: 向量模型名称
        config: 抓取/切块/排序参数
        on_usage: 每次模型响应后的用量回调（交给 UsageAccountant）
    """

    name = "web-browser"
    description = (
        "useful for when you need to find something on or summarize a webpage. input should be a comma "
        'separated list of "ONE valid http URL including protocol","what you want to find on the page or '
        'empty string for a summary".'
    )

    def __init__(
        self,
        provider: LLMProvider,
        model: str | None = None,
        embedding_model: str | None = None,
        config: WebBrowserConfig | None = None,
        on_usage: Callable[[dict[str, int]], object] | None = None,
    ):
        self.provider = provider
        self.model = model
        self.embedding_model = embedding_model
        self.config = config or WebBrowserConfig()
        self.on_usage = on_usage

    async def run(self, argument: str) -> str:
        url, task = parse_inputs(argument)

        is_valid, error_msg = _validate_url(url)
        if not is_valid:
            raise ToolError(self.name, f"URL validation failed: {error_msg}")

        text = await self._fetch(url)
        chunks = split_text(text, self.config.chunk_size, self.config.chunk_overlap)
        if not chunks:
            raise ToolError(self.name, f"No readable content at {url}")

        selected = await self._select(chunks, task)
        prompt = SUMMARY_PROMPT.format(context="\n".join(selected), task=task or "a summary")

        logger.info(f"web-browser: summarizing {len(selected)}/{len(chunks)} chunks of {url}")
        response = await self.provider.chat(
            messages=[{"role": "user", "content": prompt}],
            model=self.model,
        )
        if self.on_usage:
            self.on_usage(response.usage)
        return (response.content or "").strip()

    async def _fetch(self, url: str) -> str:
        """抓取 URL 并提取正文（HTML → Markdown；其他类型原样返回），超长截断。"""
        from readability import Document  # 延迟导入，仅在需要时加载

        async with httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            timeout=self.config.timeout,
        ) as client:
            r = await client.get(url, headers={"User-Agent": USER_AGENT})
            r.raise_for_status()

        ctype = r.headers.get("content-type", "")
        if "text/html" in ctype or r.text[:256].lower().startswith(("<!doctype", "<html")):
            doc = Document(r.text)
            content = _to_markdown(doc.summary())
            text = f"# {doc.title()}\n\n{content}" if doc.title() else content
        else:
            text = r.text

        return text[:self.config.max_chars]

    async def _select(self, chunks: list[str], task: str) -> list[str]:
        """没有任务时取前 top_k 块；否则按与任务的向量相似度取 top_k 块。"""
        top_k = self.config.top_k
        if not task or len(chunks) <= top_k:
            return chunks[:top_k]

        vectors = await self.provider.embed([task, *chunks], model=self.embedding_model)
        order = rank_chunks(vectors[0], vectors[1:], top_k)
        return [chunks[i] for i in order]
