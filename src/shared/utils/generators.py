from cuid2 import Cuid

# Workflow, run, trigger and action ids share one length so they sort and index alike
ID_LENGTH = 24

_id_generator = Cuid(length=ID_LENGTH)


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier"""
    return _id_generator.generate()
