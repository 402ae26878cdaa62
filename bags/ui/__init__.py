"""Terminal presentation: themes, formatting, rendering and the textual host."""
