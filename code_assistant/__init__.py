"""
Code Assistant: a chat client that turns prompts into code via Gemini.
"""

__version__ = "0.1.0"
