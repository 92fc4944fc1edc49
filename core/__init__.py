"""Relief Studio core pipeline."""
