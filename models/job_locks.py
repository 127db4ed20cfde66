from extensions import db


class JobLock(db.Model):
    """A row per running maintenance job; the primary key makes acquisition exclusive."""
    __tablename__ = 'job_locks'

    name = db.Column(db.String(50), primary_key=True)
    acquired_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    def __repr__(self):
        return f'<JobLock {self.name} until {self.expires_at}>'
