"""Response parsing utilities for LLM and API payloads"""

import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class LLMResponseParser:
    """Parser for LLM responses that should contain a JSON object"""
    
    @staticmethod
    def extract_json_from_text(text: str) -> Optional[Dict[str, Any]]:
        """
        Extract and parse JSON from an LLM response
        
        Models sometimes wrap JSON in markdown code blocks like:
        ```json
        {"key": "value"}
        ```
        
        This method handles bare JSON, markdown-wrapped JSON, and JSON
        surrounded by explanatory prose.
        
        Args:
            text: Raw text response from the model
        
        Returns:
            Parsed JSON dict or None if parsing fails
        """
        if not text:
            logger.warning("Empty LLM response text")
            return None
        
        # Try markdown JSON blocks first
        if '```json' in text:
            try:
                json_text = text.split('```json')[1].split('```')[0].strip()
                return json.loads(json_text)
            except (IndexError, json.JSONDecodeError) as e:
                logger.debug(f"Failed to parse markdown JSON block: {e}")
        
        # Try generic markdown code blocks
        if '```' in text:
            try:
                json_text = text.split('```')[1].split('```')[0].strip()
                return json.loads(json_text)
            except (IndexError, json.JSONDecodeError) as e:
                logger.debug(f"Failed to parse generic code block: {e}")
        
        # Try the outermost braces
        first_brace = text.find('{')
        last_brace = text.rfind('}')
        if first_brace != -1 and last_brace > first_brace:
            try:
                return json.loads(text[first_brace:last_brace + 1])
            except json.JSONDecodeError as e:
                logger.warning(f"Failed to parse LLM response as JSON: {e}\nText: {text[:200]}")
                return None
        
        logger.warning(f"No JSON object found in LLM response: {text[:200]}")
        return None


def coerce_float(raw: Any, default: Optional[float] = None) -> Optional[float]:
    """Parse a float from loosely typed API data."""
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default
