import re

CPF_LENGTH = 11
CEP_LENGTH = 8
# DDD + número fixo (8) ou celular (9).
PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 11

_NON_DIGITS = re.compile(r"\D")


def only_digits(value) -> str:
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def normalize_cpf(value) -> str:
    return only_digits(value)


def is_valid_cpf_length(value) -> bool:
    # Apenas o tamanho é verificado; dígitos verificadores não são conferidos.
    return len(only_digits(value)) == CPF_LENGTH
