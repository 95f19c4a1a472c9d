"""Gemini vision classifier for payment screenshots."""

import json
import logging
import re
from decimal import Decimal
from typing import Dict, Optional

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from fraudgate import ClassifierError, ClassifierVerdict, EvidenceClassifier

logger = logging.getLogger(__name__)

# Visible amount may differ from the expected one by fees/rounding
AMOUNT_TOLERANCE = Decimal("0.05")

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

_SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}


def build_prompt(payment_addresses: Dict[str, str], expected_amount: Optional[Decimal] = None) -> str:
    """
    Build the verification prompt.

    Args:
        payment_addresses: Network label -> authorized destination address
        expected_amount: Amount the screenshot must show, if known
    """
    sections = [
        "Analyze this image as a highly sophisticated security AI. Your task is to verify "
        "if this is a LEGITIMATE and SUCCESSFUL payment screenshot.",
        "",
        "1. PLATFORM IDENTIFICATION: Identify the wallet or exchange platform "
        "(e.g., Binance, Trust Wallet, OKX, MetaMask, Telegram Wallet).",
        "2. CRYPTOCURRENCY & NETWORK: Identify exactly which asset was sent and on which network.",
    ]
    if payment_addresses:
        listed = "\n".join(f"   - {label}: {address}" for label, address in sorted(payment_addresses.items()))
        sections.append(
            "3. DESTINATION ADDRESS: Locate the recipient address. Check if it matches ONE of these "
            f"authorized addresses EXACTLY:\n{listed}"
        )
    else:
        sections.append("3. DESTINATION ADDRESS: Locate the recipient address and report it.")
    sections.append(
        '4. STATUS CHECK: Is the transaction marked "Completed", "Successful", "Confirmed" or "Sent"? '
        'If it is "Pending", "Failed", or only a send screen without confirmation, it is NOT real.'
    )
    if expected_amount is not None:
        amount = f"${expected_amount:.2f}"
        sections.append(
            f"5. AMOUNT CHECK (critical): The expected payment amount is exactly {amount}. Locate the "
            f"amount visible in the image. If it does NOT match {amount} (within ${AMOUNT_TOLERANCE} "
            "for fees/rounding), set isReal to false and state this in reason."
        )
    sections += [
        "",
        "VERIFICATION RULES:",
    ]
    if payment_addresses:
        sections.append("- If the destination address does NOT match any authorized address, set isReal to false.")
    sections += [
        "- If the platform is clearly faked (UI inconsistencies, mismatched fonts), set isReal to false.",
        "- Use a high standard of evidence. If anything is suspicious, lower the confidence.",
        "",
        "Output pure JSON:",
        '{"isReal": boolean, "confidence": number (0.0 to 1.0), "platform": string, '
        '"crypto": string, "detectedAddress": string, "reason": string}',
    ]
    return "\n".join(sections)


def parse_verdict(text: str) -> ClassifierVerdict:
    """
    Parse model output into a verdict.

    Accepts JSON optionally wrapped in markdown code fences.

    Raises:
        ClassifierError: If the output is not a usable verdict
    """
    clean = _FENCE_RE.sub("", text or "").strip()
    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        raise ClassifierError(f"model output is not JSON: {e}") from e
    if not isinstance(data, dict) or "isReal" not in data or "confidence" not in data:
        raise ClassifierError("model output is missing isReal/confidence")
    return ClassifierVerdict(
        is_authentic=data["isReal"],
        confidence=data["confidence"],
        reason=data.get("reason") or "",
    )


class GeminiClassifier(EvidenceClassifier):
    """
    Google Gemini vision classifier.

    No retries: the pipeline's timeout bounds the whole call and a failure
    falls back to manual review.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.5-flash",
        payment_addresses: Optional[Dict[str, str]] = None,
        request_timeout: float = 15.0
    ):
        if not api_key:
            raise ValueError("GEMINI_API_KEY not configured in environment")

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name, safety_settings=_SAFETY_SETTINGS)
        self.payment_addresses = dict(payment_addresses or {})
        self.request_timeout = request_timeout

        logger.info(f"Gemini classifier initialized with model {model_name}")

    def classify(self, artifact, mime_type, expected_amount=None) -> ClassifierVerdict:
        prompt = build_prompt(self.payment_addresses, expected_amount)
        try:
            response = self.model.generate_content(
                [prompt, {"mime_type": mime_type, "data": artifact}],
                generation_config=genai.types.GenerationConfig(temperature=0.0),
                request_options={"timeout": self.request_timeout},
            )
            text = response.text
        except Exception as e:
            raise ClassifierError(f"Gemini request failed: {e}") from e
        return parse_verdict(text)


class UnconfiguredClassifier(EvidenceClassifier):
    """Used when no API key is set; every claim goes to manual review."""

    def classify(self, artifact, mime_type, expected_amount=None) -> ClassifierVerdict:
        raise ClassifierError("no classifier configured")
