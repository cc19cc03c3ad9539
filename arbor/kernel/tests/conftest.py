"""
Arbor kernel test configuration.

Shared fixtures: a small org chart with node types, used across store,
mutation, query and projection tests.

    company (Organization)
    ├── sales (Department)
    │   ├── alice (Employee)   Department: Sales, Role: Manager
    │   └── bob   (Employee)   Department: Sales, Role: Rep
    └── eng (Department)
        └── carol (Employee)   Department: Engineering, Role: Lead
    archive                    untyped, free-form field "Note"
"""

import pytest

from arbor.kernel.types import CustomField, CustomFieldDefinition, Node, NodeType


def employee(node_id: str, name: str, department: str, role: str) -> Node:
    return Node(
        id=node_id,
        name=name,
        node_type="t_employee",
        icon="🧑",
        custom_fields=[
            CustomField(id=f"{node_id}_dept", name="Department", value=department, definition_id="d_dept"),
            CustomField(id=f"{node_id}_role", name="Role", value=role, definition_id="d_role"),
        ],
    )


@pytest.fixture
def node_types():
    return [
        NodeType(id="t_org", name="Organization", icon="🏢"),
        NodeType(id="t_dept", name="Department", icon="📁"),
        NodeType(
            id="t_employee",
            name="Employee",
            icon="🧑",
            field_definitions=[
                CustomFieldDefinition(id="d_dept", name="Department", type="text"),
                CustomFieldDefinition(id="d_role", name="Role", type="text", required=True),
            ],
        ),
    ]


@pytest.fixture
def forest():
    return [
        Node(
            id="company",
            name="Acme Corp",
            node_type="t_org",
            children=[
                Node(
                    id="sales",
                    name="Sales",
                    node_type="t_dept",
                    children=[
                        employee("alice", "Alice Smith", "Sales", "Manager"),
                        employee("bob", "Bob Jones", "Sales", "Rep"),
                    ],
                ),
                Node(
                    id="eng",
                    name="Engineering",
                    node_type="t_dept",
                    children=[employee("carol", "Carol White", "Engineering", "Lead")],
                ),
            ],
        ),
        Node(
            id="archive",
            name="Archive",
            custom_fields=[CustomField(id="archive_note", name="Note", value="old records")],
        ),
    ]
