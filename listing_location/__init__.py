"""Location resolution for listing forms."""
