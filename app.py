# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db bomcalc.db
  python app.py import-catalog catalogo.xlsx
  python app.py import-order PO-1 pedido.xlsx
  python app.py calc PO-1
  python app.py allocate PO-1
  python app.py resolve PO-1 --action M1=purchase --action M2=skip
"""

from bomcalc.adapters.cli import main

if __name__ == "__main__":
    main()
