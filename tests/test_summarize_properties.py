"""Property-based tests for Summarizer."""

import io
import json
from unittest.mock import patch

from hypothesis import given
from hypothesis import strategies as st

from src.config import BedrockConfig
from src.summarize import Summarizer


def make_summarizer(max_graphemes: int = 280):
    config = BedrockConfig(
        enabled=True, model_id="model", region="us-east-1", max_graphemes=max_graphemes
    )
    with patch("boto3.client") as mock_client:
        summarizer = Summarizer(config)
    return summarizer, mock_client.return_value


class TestSummarizerProperties:
    """Property-based tests for Summarizer."""

    @given(st.text(max_size=500), st.integers(min_value=1, max_value=1000))
    def test_prompt_carries_content_and_budget(self, content, max_graphemes):
        summarizer, _ = make_summarizer(max_graphemes)

        body = summarizer.build_request(content)

        prompt = body["messages"][0]["content"][0]["text"]
        assert content in prompt
        assert f"{max_graphemes} graphemes or less" in prompt
        # The body must survive JSON serialization for invoke_model
        assert json.loads(json.dumps(body)) == body

    @given(st.text(min_size=1, max_size=300).filter(lambda value: value.strip()))
    def test_model_text_is_returned_stripped(self, text):
        summarizer, client = make_summarizer()
        client.invoke_model.return_value = {
            "body": io.BytesIO(json.dumps({"content": [{"text": text}]}).encode())
        }

        assert summarizer.summarize("content") == text.strip()
