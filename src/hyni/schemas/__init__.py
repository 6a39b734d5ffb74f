"""Provider schema documents bundled with hyni."""
