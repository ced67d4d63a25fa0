"""
ORM call chains: the same join seen through a JS query builder and SQLAlchemy
"""

from querymap import InputMode, parse_to_graph

knex_code = """
export async function bigOrders(db) {
  return db('orders')
    .join('users', 'users.id', 'orders.user_id')
    .leftOuterJoin('coupons', 'coupons.id', 'orders.coupon_id')
    .where('orders.total', '>', 100)
    .select('orders.id', 'users.name');
}

export const activeUsers = () => prisma.user.findMany({ where: { active: true } });
"""

sqlalchemy_code = """
rows = (
    session.query(Order, func.count(Item.id))
    .join(User, Order.user_id == User.id)
    .outerjoin(Product)
    .filter(Order.total > 100)
    .group_by(Order.id)
    .all()
)
"""


def show(title, parsed):
    print(title)
    print("-" * len(title))
    for node in parsed.nodes:
        cost = "-" if node.cost is None else node.cost
        print(f"  {node.kind.value:<10} {node.label:<12} cost={cost}")
    for message in parsed.errors or []:
        print(f"  note: {message}")
    print()


def main():
    print("=" * 80)
    print("ORM Query Graph Example")
    print("=" * 80)
    print()

    show("knex / prisma (orm-js)", parse_to_graph(InputMode.ORM_JS, knex_code))
    show("SQLAlchemy (orm-py)", parse_to_graph(InputMode.ORM_PY, sqlalchemy_code))

    # Syntax errors never raise; they collapse to a single sentinel node
    broken = parse_to_graph("orm-js", "db('orders'.join(")
    print(f"Broken input -> is_error={broken.is_error}: {broken.errors[0]}")


if __name__ == "__main__":
    main()
