"""
models/medgemma_runner.py

Local MedGemma backend for the conversation gateway (text chat).

Notes:
- Gemma3/MedGemma expects chat formatting (apply_chat_template); the
  processor inserts the special tokens, so messages are passed as
  structured content and never hand-formatted.
- The template uses "assistant" for model turns; gateway "model" turns are
  mapped accordingly.

Auth:
- If the repo is gated, log in with the Hugging Face CLI or provide a
  token via HUGGINGFACE_HUB_TOKEN or HF_TOKEN.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import torch
from transformers import AutoModelForCausalLM, AutoProcessor

from models.gateway import Turn, validate_history

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "google/medgemma-1.5-4b-it"


def _get_hf_token_optional() -> Optional[str]:
    return os.environ.get("HUGGINGFACE_HUB_TOKEN") or os.environ.get("HF_TOKEN")


def _text_message(role: str, text: str) -> Dict[str, Any]:
    return {"role": role, "content": [{"type": "text", "text": text}]}


class MedGemmaRunner:
    """Loads MedGemma once and generates replies for a chat message list."""

    def __init__(self, model_name: str = DEFAULT_MODEL_NAME, max_new_tokens: int = 768) -> None:
        self.model_name = model_name
        self.max_new_tokens = max_new_tokens
        self.device: str = "cuda" if torch.cuda.is_available() else "cpu"
        logger.info("MedGemmaRunner: using device=%s", self.device)

        token = _get_hf_token_optional()

        logger.info("Loading processor for %s ...", model_name)
        self.processor = AutoProcessor.from_pretrained(
            model_name,
            trust_remote_code=True,
            token=token,
        )

        if self.device == "cuda":
            # 4-bit needs bitsandbytes; fp16 otherwise
            try:
                from transformers import BitsAndBytesConfig

                bnb_config = BitsAndBytesConfig(
                    load_in_4bit=True,
                    bnb_4bit_quant_type="nf4",
                    bnb_4bit_use_double_quant=True,
                    bnb_4bit_compute_dtype=torch.bfloat16,
                )
                logger.info("Loading model %s (4-bit, device_map=auto) ...", model_name)
                self.model = AutoModelForCausalLM.from_pretrained(
                    model_name,
                    trust_remote_code=True,
                    token=token,
                    quantization_config=bnb_config,
                    device_map="auto",
                )
            except (ImportError, ValueError, RuntimeError) as e:
                logger.warning("4-bit load failed (%s). Falling back to fp16.", e)
                self.model = AutoModelForCausalLM.from_pretrained(
                    model_name,
                    trust_remote_code=True,
                    token=token,
                    torch_dtype=torch.float16,
                    device_map="auto",
                )
        else:
            logger.info("Loading model %s (cpu fp32) ...", model_name)
            self.model = AutoModelForCausalLM.from_pretrained(
                model_name,
                trust_remote_code=True,
                token=token,
                torch_dtype=torch.float32,
            ).to("cpu")

        self.model.eval()
        logger.info("MedGemmaRunner: model loaded successfully.")

    def _get_model_device(self) -> torch.device:
        """device_map models don't always expose `.device` cleanly."""
        dev = getattr(self.model, "device", None)
        if isinstance(dev, torch.device):
            return dev
        if isinstance(dev, str):
            return torch.device(dev)
        try:
            return next(self.model.parameters()).device
        except StopIteration:
            return torch.device(self.device)

    def generate(self, messages: List[Dict[str, Any]]) -> str:
        """Run one generation over the full chat *messages* list."""
        prompt: str = self.processor.apply_chat_template(
            messages,
            add_generation_prompt=True,
            tokenize=False,
        )
        inputs = self.processor(text=prompt, return_tensors="pt").to(self._get_model_device())

        with torch.no_grad():
            output_ids = self.model.generate(
                **inputs,
                max_new_tokens=self.max_new_tokens,
                do_sample=False,
            )

        input_len = int(inputs["input_ids"].shape[-1])
        return self.processor.decode(output_ids[0][input_len:], skip_special_tokens=True).strip()


class MedGemmaConversation:
    """One multi-turn chat replayed through the local model on every send."""

    def __init__(self, runner: Any, system_instruction: str, history: List[Turn]) -> None:
        self._runner = runner
        self.messages: List[Dict[str, Any]] = [_text_message("system", system_instruction)]
        for turn in history:
            role = "user" if turn.role == "user" else "assistant"
            self.messages.append(_text_message(role, turn.text))

    def send(self, text: str) -> str:
        pending = [*self.messages, _text_message("user", text)]
        reply = self._runner.generate(pending)
        self.messages = [*pending, _text_message("assistant", reply)]
        return reply


class MedGemmaGateway:
    """Opens conversations against a single loaded :class:`MedGemmaRunner`."""

    def __init__(self, runner: Any) -> None:
        self._runner = runner
        self.model = getattr(runner, "model_name", DEFAULT_MODEL_NAME)

    def start_conversation(
        self, system_instruction: str, history: Optional[List[Turn]] = None
    ) -> MedGemmaConversation:
        return MedGemmaConversation(
            self._runner, system_instruction, validate_history(history or [])
        )
