"""plus - gerenciador de pacotes baseado em fontes."""

__version__ = "0.1.0"
