from setuptools import setup, find_packages

setup(
    name="plus-pm",
    version="0.1.0",
    description="Gerenciador de pacotes Linux baseado em fontes (resolve, compila, instala, registra).",
    author="Seu Nome",
    license="GPL-3.0",
    packages=find_packages(include=["plus", "plus.*"]),
    python_requires=">=3.8",
    install_requires=[
        "rich>=13.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "plus=plus.modules.cli:main",
        ],
    },
)
