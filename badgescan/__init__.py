"""
Badgescan: Vision-model text extraction for badges and business cards

Accepts a base64 image and a model name, forwards the image to OpenAI,
Anthropic or OpenRouter, and returns Name/Company/Role/Credentials records
or one normalized error.
"""

__version__ = "0.1.0"
