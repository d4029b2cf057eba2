"""HTML pages rendered with htpy."""

from .pages import render_board_index, render_catalog, render_thread, render_welcome

__all__ = ["render_board_index", "render_catalog", "render_thread", "render_welcome"]
