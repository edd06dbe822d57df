# news_copilot/sql_generator.py
from __future__ import annotations

import time
from typing import Any, Dict, Optional

import torch
from loguru import logger
from transformers import AutoModelForCausalLM, AutoTokenizer

from news_copilot.generation import (
    GenerationConfig,
    GenerationResult,
    build_sql_prompt,
    postprocess_to_sql,
)
from news_copilot.schema_service import SchemaService
from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy, SQLPolicy


_DTYPES = {
    "float16": torch.float16,
    "fp16": torch.float16,
    "bfloat16": torch.bfloat16,
    "bf16": torch.bfloat16,
    "float32": torch.float32,
    "fp32": torch.float32,
}


def resolve_device_and_dtype(cfg: GenerationConfig):
    device = cfg.device or ("cuda" if torch.cuda.is_available() else "cpu")
    if cfg.dtype is None:
        return device, torch.float16 if device == "cuda" else torch.float32
    try:
        return device, _DTYPES[cfg.dtype.lower()]
    except KeyError:
        raise ValueError(f"Unsupported dtype: {cfg.dtype}") from None


class SQLGenerator:
    """
    Local Hugging Face drafter for offline deployments. Greedy decoding
    unless cfg.do_sample is set. Output is untrusted like any other draft.
    """

    def __init__(
        self,
        schema_service: SchemaService,
        cfg: Optional[GenerationConfig] = None,
        *,
        column_policy: Optional[ColumnPolicy] = None,
    ):
        self.schema_service = schema_service
        self.cfg = cfg or GenerationConfig()
        self.column_policy = column_policy or ARTICLES_POLICY
        self.device, self.dtype = resolve_device_and_dtype(self.cfg)

        logger.info("Loading {} on {} ({})", self.cfg.model_name, self.device, self.dtype)
        self.tokenizer = AutoTokenizer.from_pretrained(self.cfg.model_name, use_fast=True)
        self.model = AutoModelForCausalLM.from_pretrained(
            self.cfg.model_name,
            torch_dtype=self.dtype,
            device_map="auto" if self.device == "cuda" else None,
        )
        if self.device != "cuda":
            self.model.to(self.device)
        self.model.eval()

    def _generate_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "max_new_tokens": self.cfg.max_new_tokens,
            "do_sample": self.cfg.do_sample,
            "repetition_penalty": self.cfg.repetition_penalty,
            "pad_token_id": self.tokenizer.eos_token_id,
            "eos_token_id": self.tokenizer.eos_token_id,
        }
        if self.cfg.do_sample:
            kwargs.update(temperature=self.cfg.temperature, top_p=self.cfg.top_p)
        return kwargs

    @torch.inference_mode()
    def generate_sql(
        self,
        question: str,
        policy: Optional[SQLPolicy] = None,
        error_context: Optional[str] = None,
    ) -> GenerationResult:
        prompt = build_sql_prompt(
            schema_blob=self.schema_service.schema_blob(),
            question=question,
            policy=policy,
            column_policy=self.column_policy,
            error_context=error_context,
        )
        encoded = self.tokenizer(prompt, return_tensors="pt").to(self.device)
        prompt_len = encoded["input_ids"].shape[-1]

        t0 = time.time()
        out = self.model.generate(**encoded, **self._generate_kwargs())
        latency_ms = int((time.time() - t0) * 1000)

        # Decode only the continuation
        completion = self.tokenizer.decode(out[0][prompt_len:], skip_special_tokens=True).strip()
        logger.debug("Local model answered in {}ms", latency_ms)

        return GenerationResult(
            sql_raw=completion,
            sql_clean=postprocess_to_sql(completion),
            prompt=prompt,
            model_name=self.cfg.model_name,
            latency_ms=latency_ms,
            meta={
                "backend": "local",
                "device": self.device,
                "dtype": str(self.dtype),
                "max_new_tokens": self.cfg.max_new_tokens,
                "do_sample": self.cfg.do_sample,
            },
        )
