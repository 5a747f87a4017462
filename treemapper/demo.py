"""
Round-trip a nested person record through a tree and JSON text.

Run with `python -m treemapper.demo`.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from treemapper.config.logging import configure_logging
from treemapper.serialization.tree_mapping import TreeMappable, from_tree, mappable, to_tree


@mappable
@dataclass
class Car(TreeMappable):
    make: str = field(default="", metadata={"format": "S"})
    model: str = field(default="", metadata={"format": "S"})


@mappable
@dataclass
class Job(TreeMappable):
    title: str = field(default="", metadata={"format": "S"})
    salary: float = field(default=0.0, metadata={"format": "d"})
    car: Car = field(default_factory=Car, metadata={"ptype": Car})


@mappable
@dataclass
class Person(TreeMappable):
    name: str = field(default="", metadata={"format": "S"})
    age: int = field(default=0, metadata={"format": "i"})
    job: Job = field(default_factory=Job, metadata={"ptype": Job})


def sample_person() -> Person:
    return Person("John Doe", 30, Job("Software Engineer", 100000, Car("Tesla", "Model S")))


def format_person(person: Person) -> str:
    return "\n".join([
        f"Name: {person.name}",
        f"Age: {person.age}",
        f"Job title: {person.job.title}",
        f"Job salary: {person.job.salary:g}",
        f"Car make: {person.job.car.make}",
        f"Car model: {person.job.car.model}",
    ])


def main() -> None:
    configure_logging()

    person = sample_person()
    print(format_person(person))

    tree = to_tree(person)
    print("JSON: " + person.serialize_to_json(indent=4))

    person2 = Person()
    from_tree(tree, person2)
    print(format_person(person2))


if __name__ == "__main__":
    main()
