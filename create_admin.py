"""Cria (ou promove) um usuario administrador do portal."""
import getpass
import logging

from app import app, db
from app.models.tables import User

logging.basicConfig(level=logging.INFO)


def main():
    """Pede os dados no terminal e grava o usuario com role 'admin'."""
    logging.info("Criar Usuário Admin")

    name = input("Nome completo: ")
    username = input("Nome de usuário (para login): ")
    email = input("Email: ")
    password = getpass.getpass("Senha: ")

    user = User.query.filter_by(username=username).first()
    if user is None:
        user = User(name=name, username=username, email=email)
        db.session.add(user)
    user.role = 'admin'
    user.ativo = True
    user.set_password(password)
    db.session.commit()

    logging.info("Usuário '%s' salvo com a role de 'admin'!", username)


if __name__ == '__main__':
    with app.app_context():
        main()
