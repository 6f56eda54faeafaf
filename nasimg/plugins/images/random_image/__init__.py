"""Serve one random image from the indexed remote tree."""

PLUGIN_METADATA = {
    "version": "1.0.0",
    "prefix": "",
}
