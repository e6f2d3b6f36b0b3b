"""
Sitemap output sinks.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from lxml import etree

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
IMAGE_NS = "http://www.google.com/schemas/sitemap-image/1.1"


class SinkError(Exception):
    """Custom exception for sitemap output failures."""
    pass


class SitemapSink:
    """Abstract base class for sitemap sinks. Written to once per crawl."""

    async def write(self, urls: List[str]):
        raise NotImplementedError


class FileSitemapSink(SitemapSink):
    """Writes ``sitemap.xml`` and ``sitemap.json`` into a directory."""

    def __init__(self, directory: str = ".", xml_filename: str = "sitemap.xml",
                 json_filename: str = "sitemap.json", changefreq: str = "weekly",
                 priority: float = 0.8):
        self.directory = Path(directory)
        self.xml_path = self.directory / xml_filename
        self.json_path = self.directory / json_filename
        self.changefreq = changefreq
        self.priority = priority
        self.logger = logging.getLogger(__name__)
        self.written_at: Optional[datetime] = None

    async def write(self, urls: List[str]):
        """Write the sitemap files. Later calls on the same sink are ignored."""
        if self.written_at is not None:
            self.logger.warning(
                f"Sitemap already written at {self.written_at.isoformat()}, ignoring repeated write"
            )
            return

        now = datetime.now(timezone.utc)
        self.logger.info(f"Creating sitemap for {len(urls)} links")

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.xml_path.write_bytes(self.build_xml(urls, now.date().isoformat()))
            with open(self.json_path, 'w', encoding='utf-8') as f:
                json.dump({
                    'hrefs': list(urls),
                    'generatedAt': now.isoformat(),
                    'count': len(urls),
                }, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise SinkError(f"Failed to write sitemap to {self.directory}: {e}") from e

        self.written_at = now
        self.logger.info(f"Sitemap written to {self.xml_path} and {self.json_path}")

    def build_xml(self, urls: List[str], lastmod: str) -> bytes:
        """Render the urlset document."""
        urlset = etree.Element(
            f"{{{SITEMAP_NS}}}urlset",
            nsmap={None: SITEMAP_NS, 'xsi': XSI_NS, 'image': IMAGE_NS},
        )
        for href in urls:
            entry = etree.SubElement(urlset, f"{{{SITEMAP_NS}}}url")
            etree.SubElement(entry, f"{{{SITEMAP_NS}}}loc").text = href
            etree.SubElement(entry, f"{{{SITEMAP_NS}}}changefreq").text = self.changefreq
            etree.SubElement(entry, f"{{{SITEMAP_NS}}}lastmod").text = lastmod
            etree.SubElement(entry, f"{{{SITEMAP_NS}}}priority").text = str(self.priority)

        return etree.tostring(urlset, xml_declaration=True, encoding='UTF-8', pretty_print=True)
