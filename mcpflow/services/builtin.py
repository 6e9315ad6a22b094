"""
Built-in In-Process Services.

Small services that run inside MCPFlow itself. They back the demo
workflow and let workflows be tried out without an MCP gateway.
"""

import re
from typing import Any, Dict
from mcpflow.services.registry import register_service


POSITIVE_WORDS = {
    "good", "great", "excellent", "love", "happy", "fast", "helpful",
    "amazing", "thanks", "perfect", "easy", "nice",
}

NEGATIVE_WORDS = {
    "bad", "terrible", "awful", "hate", "slow", "broken", "angry",
    "refund", "worst", "bug", "crash", "useless",
}


@register_service(
    slug="text-stats",
    name="Text Statistics",
    description="Count characters, words, sentences and lines in a text",
    cost_per_call_cents=1,
    category="text",
    capabilities=["analysis"],
)
def text_stats(inputs: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Compute basic statistics for a text.
    
    Args:
        inputs: Must contain 'text'
        config: Unused
        
    Returns:
        Dict with character, word, sentence and line counts
    """
    text = str(inputs.get("text") or "")
    words = re.findall(r"\b[\w']+\b", text)
    sentences = [s for s in re.split(r"[.!?]+", text) if s.strip()]
    
    return {
        "characters": len(text),
        "words": len(words),
        "sentences": len(sentences),
        "lines": len(text.splitlines()) if text else 0,
        "average_word_length": (
            round(sum(len(w) for w in words) / len(words), 2) if words else 0
        ),
    }


@register_service(
    slug="keyword-sentiment",
    name="Keyword Sentiment",
    description="Score the sentiment of a text from positive and negative keywords",
    cost_per_call_cents=2,
    category="text",
    capabilities=["analysis", "classification"],
)
def keyword_sentiment(inputs: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Score sentiment between -1 (negative) and 1 (positive).
    
    `config.extra_negative` may list additional negative keywords.
    """
    text = str(inputs.get("text") or "").lower()
    words = re.findall(r"[a-z']+", text)
    negative_words = NEGATIVE_WORDS | set(config.get("extra_negative", []))
    
    positive = [w for w in words if w in POSITIVE_WORDS]
    negative = [w for w in words if w in negative_words]
    total = len(positive) + len(negative)
    score = round((len(positive) - len(negative)) / total, 2) if total else 0.0
    
    if score > 0.2:
        label = "positive"
    elif score < -0.2:
        label = "negative"
    else:
        label = "neutral"
    
    return {
        "score": score,
        "label": label,
        "positive_matches": positive,
        "negative_matches": negative,
    }


@register_service(
    slug="echo",
    name="Echo",
    description="Return the inputs and config it was called with",
    category="utility",
)
def echo(inputs: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """Return the call arguments unchanged."""
    return {"inputs": inputs, "config": config}
