"""RSS 2.0 rendering of a synchronized channel."""

import re
import xml.etree.ElementTree as ET
from email.utils import format_datetime

from .models import Channel, Item

CONTENT_TYPE = "application/xml"

# C0 controls other than tab, newline and carriage return are not allowed in XML 1.0
INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")


def xml_text(value: str | None) -> str | None:
    if value is None:
        return None
    return INVALID_XML_CHARS.sub("", value)


def build_feed(channel: Channel, items: list[Item]) -> bytes:
    """Render channel and items as an RSS 2.0 document.

    Items are written in the order given.
    """
    root = ET.Element("rss", version="2.0")
    rss_channel = ET.SubElement(root, "channel")
    ET.SubElement(rss_channel, "title").text = xml_text(channel.title or channel.name)
    ET.SubElement(rss_channel, "link").text = xml_text(channel.link)
    ET.SubElement(rss_channel, "description").text = xml_text(channel.description)

    for item in items:
        node = ET.SubElement(rss_channel, "item")
        ET.SubElement(node, "title").text = xml_text(item.header)
        ET.SubElement(node, "link").text = xml_text(item.link)
        ET.SubElement(node, "guid", isPermaLink="true").text = xml_text(item.link)
        ET.SubElement(node, "description").text = xml_text(item.content)
        ET.SubElement(node, "pubDate").text = format_datetime(item.created_at)

    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
