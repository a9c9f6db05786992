# Voice Command Interpreter for the Kasir POS engine
# Turns "beli dua puluh lima indomie dong" into (25, "indomie") and finds the product

import re
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Product, VoiceCommand

logger = logging.getLogger(__name__)

# Indonesian number words, including two-word forms
NUMBER_WORDS: Dict[str, int] = {
    'satu': 1, 'dua': 2, 'tiga': 3, 'empat': 4, 'lima': 5,
    'enam': 6, 'tujuh': 7, 'delapan': 8, 'sembilan': 9, 'sepuluh': 10,
    'sebelas': 11, 'dua belas': 12, 'tiga belas': 13, 'empat belas': 14, 'lima belas': 15,
    'enam belas': 16, 'tujuh belas': 17, 'delapan belas': 18, 'sembilan belas': 19,
    'dua puluh': 20, 'tiga puluh': 30, 'empat puluh': 40, 'lima puluh': 50,
    'enam puluh': 60, 'tujuh puluh': 70, 'delapan puluh': 80, 'sembilan puluh': 90,
    'seratus': 100,
}

# Loose forms speech recognition tends to produce
ALT_NUMBER_WORDS: Dict[str, int] = {
    'se': 1, 'sae': 1, 'sa': 1,
    'duo': 2, 'tre': 3, 'for': 4, 'faiv': 5,
    'siks': 6, 'seven': 7, 'eit': 8, 'nain': 9, 'ten': 10,
}

TENS_WORDS: Dict[str, int] = {k: v for k, v in NUMBER_WORDS.items() if k.endswith(' puluh')}

LEADING_VERB = re.compile(r'^(beli|ambil|tambah|mau|ingin)\s+')
TRAILING_FILLER = re.compile(r'\s+(dong|ya|aja|saja|please)$')
LEADING_DIGITS = re.compile(r'^(\d+)')


def _take_quantity(words: List[str]) -> Tuple[Optional[int], List[str]]:
    """Consume a leading quantity token, longest form first"""
    if not words:
        return None, words

    digits = LEADING_DIGITS.match(words[0])
    if digits:
        return int(digits.group(1)), words[1:]

    if len(words) >= 3:
        tens = TENS_WORDS.get(f"{words[0]} {words[1]}")
        ones = NUMBER_WORDS.get(words[2])
        if tens and ones and ones < 10:
            return tens + ones, words[3:]

    if len(words) >= 2:
        pair = NUMBER_WORDS.get(f"{words[0]} {words[1]}")
        if pair:
            return pair, words[2:]

    single = NUMBER_WORDS.get(words[0]) or ALT_NUMBER_WORDS.get(words[0])
    if single:
        return single, words[1:]

    return None, words


def parse(text: str) -> VoiceCommand:
    """Split a spoken/typed request into quantity and product name fragment"""
    clean = ' '.join((text or '').lower().split())
    clean = LEADING_VERB.sub('', clean)

    quantity, rest = _take_quantity(clean.split(' ') if clean else [])
    product_name = ' '.join(rest) if quantity is not None else clean
    product_name = LEADING_VERB.sub('', product_name)
    product_name = TRAILING_FILLER.sub('', product_name).strip()

    if quantity is None or quantity < 1:
        quantity = 1

    command = VoiceCommand(quantity=quantity, product_name=product_name, original_text=text)
    logger.debug("Parsed voice command %r -> %s x %r", text, quantity, product_name)
    return command


def match_product(fragment: str, catalog: Iterable[Product]) -> Optional[Product]:
    """
    Resolve a name fragment against the catalog.
    Stages, first hit wins: exact name, substring either way, barcode, word overlap.
    """
    needle = (fragment or '').lower().strip()
    if not needle:
        return None
    products = [p for p in catalog if p.name]

    for product in products:
        if product.name.lower() == needle:
            return product

    for product in products:
        name = product.name.lower()
        if needle in name or name in needle:
            return product

    for product in products:
        if product.barcode and needle in product.barcode.lower():
            return product

    needle_words = needle.split()
    for product in products:
        product_words = product.name.lower().split()
        if any(nw in pw or pw in nw for nw in needle_words for pw in product_words):
            logger.debug("Fuzzy matched '%s' -> %s", fragment, product.name)
            return product

    return None


def resolve(text: str, catalog: Iterable[Product]) -> Tuple[VoiceCommand, Optional[Product]]:
    """Parse then match; an unmatched product is a normal outcome"""
    command = parse(text)
    product = match_product(command.product_name, catalog)
    if product is None:
        logger.info(f"Voice command not recognized: {text!r}")
    return command, product
