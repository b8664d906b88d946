"""
Ponto de entrada de ``python -m escalada``.

Delega imediatamente para :func:`escalada.cli.main`, que constrói o parser
argparse e despacha para o subcomando correto.

Uso::

    python -m escalada --help
    python -m escalada enriquecer --api --limite 100
    python -m escalada status
"""

from escalada.cli import main

if __name__ == "__main__":
    main()
