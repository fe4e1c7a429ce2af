from sqlalchemy.orm import Session


class Repository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def save(self, obj):
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def _persist(self, obj, *, commit: bool):
        """Add a row; commit it now or leave it pending in the caller's transaction."""
        if commit:
            return self.save(obj)
        self.session.add(obj)
        self.session.flush()
        return obj
