"""Web-side analysis: page content, content scoring and registration age."""

from .content import ContentAnalysis, ContentEvaluator, ExtractedWallet, extract_wallet_candidates, score_phrases
from .registration import RegistrationInfo, RegistrationLookup
from .render import BrowserRenderer, ContentSource, PageContent, RenderPipeline, html_to_text

__all__ = [
    "BrowserRenderer",
    "ContentAnalysis",
    "ContentEvaluator",
    "ContentSource",
    "ExtractedWallet",
    "PageContent",
    "RegistrationInfo",
    "RegistrationLookup",
    "RenderPipeline",
    "extract_wallet_candidates",
    "html_to_text",
    "score_phrases",
]
