"""Storefront backend: product catalog + face replacement compositing."""
