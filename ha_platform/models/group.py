"""
로드밸런서 그룹 모델
"""
from ha_platform import db

LB_ALGORITHMS = ('round_robin', 'least_connections', 'source_ip_hash')


class Group(db.Model):
    """서버별 프록시 / 로드밸런싱 그룹"""
    __tablename__ = 'groups'

    id = db.Column(db.Integer, primary_key=True)
    server_id = db.Column(db.Integer, db.ForeignKey('servers.id'), nullable=False)
    lb_algorithm = db.Column(db.String(32), nullable=False, default='round_robin')
    proxy_ip = db.Column(db.String(255), nullable=False)

    def __repr__(self):
        return f'<Group {self.server_id}:{self.lb_algorithm}>'

    def to_dict(self):
        return {
            'id': self.id,
            'server_id': self.server_id,
            'server_name': self.server.new_vm_name if self.server else None,
            'lb_algorithm': self.lb_algorithm,
            'proxy_ip': self.proxy_ip
        }
