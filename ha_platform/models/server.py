"""
서버 모델
"""
from datetime import datetime
from ha_platform import db

MASTER_MARKER = 'master'


class Server(db.Model):
    """서버 모델 (MySQL primary / replica VM)"""
    __tablename__ = 'servers'

    id = db.Column(db.Integer, primary_key=True)
    new_vm_name = db.Column(db.String(128), unique=True, nullable=False)
    vm_memory = db.Column(db.Integer, nullable=False)  # MiB 단위
    vm_cores = db.Column(db.Integer, nullable=False)
    ci_user = db.Column(db.String(64), nullable=False)
    ci_password = db.Column(db.String(255), nullable=False)  # 해시 저장
    mysql_password = db.Column(db.String(255), nullable=False)  # 해시 저장
    ipconfig0 = db.Column(db.String(255), nullable=False)
    is_master = db.Column(db.String(128), nullable=False, default=MASTER_MARKER)
    provider = db.Column(db.String(20), nullable=False, default='proxmox')
    status = db.Column(db.String(20), default='queued')
    ip = db.Column(db.String(45))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    groups = db.relationship('Group', backref='server', lazy='dynamic')

    def __repr__(self):
        return f'<Server {self.new_vm_name}>'

    @property
    def is_primary(self):
        """primary 여부 (대소문자 무시)"""
        return (self.is_master or '').lower() == MASTER_MARKER

    @property
    def master_name(self):
        """이 서버를 기준으로 만든 replica 가 가리킬 primary 이름"""
        return self.new_vm_name if self.is_primary else self.is_master

    def to_dict(self):
        """딕셔너리로 변환 (비밀번호 해시 제외)"""
        return {
            'id': self.id,
            'new_vm_name': self.new_vm_name,
            'vm_memory': self.vm_memory,
            'vm_cores': self.vm_cores,
            'ci_user': self.ci_user,
            'ipconfig0': self.ipconfig0,
            'is_master': self.is_master,
            'provider': self.provider,
            'status': self.status,
            'ip': self.ip,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    @classmethod
    def get_by_name(cls, name):
        """이름으로 서버 조회"""
        return cls.query.filter_by(new_vm_name=name).first()

    def update_status(self, status):
        """상태 업데이트"""
        self.status = status
        self.updated_at = datetime.utcnow()
        db.session.commit()
