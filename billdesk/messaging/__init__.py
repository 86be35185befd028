"""Outbound messaging"""

from .whatsapp import ShareLink, build_share_link, build_share_message

__all__ = ["ShareLink", "build_share_link", "build_share_message"]
